"""
Utility functions for the rconsole library
"""
import asyncio
import sys
from typing import Callable, Any


def run_with_keyboard_interrupt(main_func: Callable[[], Any]) -> None:
    """
    Run an async main function with graceful KeyboardInterrupt handling.

    This function wraps asyncio.run() to catch KeyboardInterrupt (Ctrl+C) and
    exit cleanly instead of printing a traceback.

    Args:
        main_func: The async main function to run
    """
    try:
        asyncio.run(main_func())
    except KeyboardInterrupt:
        print("\nInterrupted by user (Ctrl+C)")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
