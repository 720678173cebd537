"""
High-level connection interface.

This module provides RCon, the object most applications use: it owns the
transport, authenticates, runs commands and reconnects when the link drops.
"""

from .connection import RCon, CallbackOnAuth, CallbackOnError

__all__ = [
    "RCon",
    "CallbackOnAuth",
    "CallbackOnError",
]
