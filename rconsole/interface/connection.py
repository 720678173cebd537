import asyncio
import inspect
import logging
import traceback
from typing import Any, Callable, Optional, Self

from colorama import Fore, Style

from ..api import RConProtocol, RConConfig, TransportKind, ConnectionState, Const
from ..io import Packet, RConStreamProtocol
from ..exceptions import RConAuthError, RConConfigurationError, RConConnectionError, RConTimeoutError

"""
===================================================================================
This module owns the transport and drives the connection lifecycle:
connect, authenticate, run commands, disconnect and reconnect.
===================================================================================

Example usage:
async def main():
    rcon = RCon({"host": "127.0.0.1", "port": 25575, "password": "hunter2"})
    rcon.on_auth = lambda ok: print("Connected" if ok else "Rejected")
    async with rcon:
        await rcon.wait_until_ready()
        print(await rcon.run_command("list"))

asyncio.run(main())
"""

CallbackOnAuth = Callable[[bool], Any]
CallbackOnError = Callable[[Exception], Any]


class RCon:
    def __init__(self,
                 config: RConConfig | dict,
                 logger: Optional[logging.Logger] = None,
                 print_traffic: bool = False):
        if isinstance(config, dict):
            config = RConConfig.from_dict(config)
        elif not isinstance(config, RConConfig):
            raise RConConfigurationError(f"Invalid options for RCon: {type(config).__name__}")
        self.config: RConConfig = config
        self.logger = logger or logging.getLogger(__name__)
        self.print_traffic = print_traffic
        self.protocol = RConProtocol(self._auth_received, logger=self.logger)
        self.state = ConnectionState.DISCONNECTED

        # Notification sinks, plain functions or coroutine functions
        self.on_auth: Optional[CallbackOnAuth] = None
        self.on_error: Optional[CallbackOnError] = None

        self._transport: Optional[asyncio.Transport] = None
        self._stream: Optional[RConStreamProtocol] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._command_lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._ready_error: Optional[RConConnectionError] = None
        self._auth_error: Optional[RConAuthError] = None
        # Bumped whenever an in-flight dial stops being wanted
        self._attempt = 0
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self):
        """Async context manager entry"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

    def __repr__(self) -> str:
        return f"RCon({self._target()}, state={self.state.name})"

    # ============================
    # LIFECYCLE
    # ============================

    async def connect(self) -> Self:
        """Open the transport and send the password. Failures are reported through on_error."""
        if self.is_connected():
            self.logger.warning(f"Already connected to {self._target()}")
            return self
        if self.state == ConnectionState.CONNECTING:
            self.logger.warning(f"Already connecting to {self._target()}")
            return self
        if self._reconnect_task and self._reconnect_task is not asyncio.current_task():
            self._reconnect_task.cancel()
            self._reconnect_task = None

        self.protocol.reset()
        self._ready.clear()
        self._ready_error = None
        self._auth_error = None
        self.state = ConnectionState.CONNECTING
        self._attempt += 1
        attempt = self._attempt
        self.logger.info(f"Connecting to {self._target()}")

        try:
            transport, stream = await self._open_transport()
        except OSError as e:
            if attempt != self._attempt:
                self.logger.debug(f"Abandoned connection attempt to {self._target()} failed: {e}")
                return self
            self.state = ConnectionState.DISCONNECTED
            refused = isinstance(e, ConnectionRefusedError)
            error = RConConnectionError(f"Could not connect to {self._target()}: {e}", refused=refused)
            self.logger.error(f"Could not connect to {self._target()}: {e}")
            self._dispatch(self.on_error, error)
            # A failed dial counts as a close
            if not self._schedule_reconnect():
                self._fail_ready(error)
            return self
        except (Exception, asyncio.CancelledError):
            if attempt == self._attempt:
                self.state = ConnectionState.DISCONNECTED
            raise

        if attempt != self._attempt:
            # Disconnected while the dial was in flight
            self.logger.info(f"Connection to {self._target()} no longer wanted, closing it")
            transport.close()
            return self

        self._transport = transport
        self._stream = stream
        self.state = ConnectionState.AUTHENTICATING
        self.logger.info(f"Connected to {self._target()}, authenticating")
        self._send(self.protocol.build_auth(self.config.password))
        return self

    def disconnect(self):
        """Close the transport. The reconnect flag is left as it is."""
        if not self.config.reconnect:
            self._cancel_reconnect()
        if self.state == ConnectionState.CONNECTING:
            self.logger.info(f"Abandoning connection attempt to {self._target()}")
            self._attempt += 1
            self.state = ConnectionState.DISCONNECTED
            self._fail_ready(RConConnectionError(f"Connection attempt to {self._target()} abandoned"))
        self._ready.clear()
        if not self.config.reconnect:
            self._fail_ready(RConConnectionError(f"Disconnected from {self._target()}"))
        if self._transport is None:
            self.logger.debug("Disconnect requested but not connected")
            return
        self.logger.info(f"Disconnecting from {self._target()}")
        self.protocol.correlations.fail_all(self._auth_error or RConConnectionError("Disconnected"))
        if not self._transport.is_closing():
            self._transport.close()

    def reconnect(self) -> bool:
        """Disconnect and connect again after a short delay, if reconnect is enabled"""
        if not self.config.reconnect:
            return False
        self.disconnect()
        return self._schedule_reconnect()

    def set_reconnect(self, enabled: bool):
        self.config.reconnect = bool(enabled)
        if not enabled:
            self._cancel_reconnect()

    async def close(self):
        """Disable reconnect and disconnect"""
        self.set_reconnect(False)
        self.disconnect()
        for task in list(self._tasks):
            if not task.done():
                await asyncio.wait([task], timeout=1.0)

    async def wait_until_ready(self, timeout: Optional[float] = None):
        """Wait for the server to accept the password"""
        if self._auth_error:
            raise self._auth_error
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise RConTimeoutError(f"Not authenticated with {self._target()} after {timeout}s") from None
        if self._auth_error:
            raise self._auth_error
        if self._ready_error:
            raise self._ready_error

    def is_connected(self) -> bool:
        """Check if the transport is open"""
        return self._transport is not None and not self._transport.is_closing()

    def is_authenticated(self) -> bool:
        return self.state == ConnectionState.READY

    # ============================
    # COMMANDS
    # ============================

    async def run_command(self, command: str, timeout: Optional[float] = None) -> str:
        """
        Run a command and return the server's full response.

        Commands are sent one at a time: RCON can't tell interleaved
        responses apart, so a second call waits for the first to finish.
        """
        async with self._command_lock:
            if self.state == ConnectionState.AUTHENTICATING:
                await self.wait_until_ready(timeout)
            if self._auth_error:
                raise self._auth_error
            if not self.is_connected():
                raise RConConnectionError(f"Not connected to {self._target()}")

            packet, sentinel = self.protocol.build_command(command)
            fut = self.protocol.correlations.register(packet.id)
            try:
                self._send(packet)
                self._send(sentinel)
                if timeout is None:
                    return await fut
                return await asyncio.wait_for(fut, timeout=timeout)
            except asyncio.TimeoutError:
                self.logger.error(f"No response to command id {packet.id} from {self._target()} after {timeout}s")
                raise RConTimeoutError(f"No response from {self._target()} after {timeout}s") from None
            finally:
                self.protocol.correlations.discard(packet.id)

    # ============================
    # TRANSPORT
    # ============================

    async def _open_transport(self) -> tuple[asyncio.Transport, RConStreamProtocol]:
        loop = asyncio.get_running_loop()
        match self.config.transport:
            case TransportKind.DIRECT:
                return await loop.create_connection(self._make_stream, self.config.host, self.config.port)
            case TransportKind.CUSTOM:
                result = self.config.factory(self._make_stream)
                if inspect.isawaitable(result):
                    result = await result
                transport, stream = result
                if not isinstance(stream, RConStreamProtocol):
                    transport.close()
                    raise RConConfigurationError("Transport factory must return the protocol it was given")
                return transport, stream
        raise RConConfigurationError(f"Invalid transport '{self.config.transport}'")

    def _make_stream(self) -> RConStreamProtocol:
        return RConStreamProtocol(
            packet_handler=self._packet_received,
            error_handler=self._stream_error,
            close_handler=self._stream_closed,
            logger=self.logger,
        )

    def _send(self, packet: Packet):
        if self.print_traffic:
            print(Fore.MAGENTA + f"SEND: id {packet.id} type {packet.type}".ljust(26)
                  + Fore.WHITE + Style.DIM + f"[{', '.join(f'0x{b:02X}' for b in packet.raw)}]"
                  + Style.RESET_ALL)
        self.logger.debug(f"Sending packet id {packet.id} type {packet.type} ({packet.size} bytes)")
        self._transport.write(packet.raw)

    def _packet_received(self, packet: Packet):
        if self.print_traffic:
            print(Fore.CYAN + f"RECV: id {packet.id} type {packet.type}".ljust(26)
                  + Style.BRIGHT + f"{packet.body!r}"
                  + Style.RESET_ALL)
        self.logger.debug(f"Received packet id {packet.id} type {packet.type} ({packet.size} bytes)")
        self.protocol.handle_packet(packet)

    def _stream_error(self, exc: Exception):
        self._dispatch(self.on_error, exc)

    def _stream_closed(self, stream: RConStreamProtocol, exc: Optional[Exception]):
        if stream is not self._stream:
            # Left over from an earlier connection
            return
        self._transport = None
        self._stream = None
        self._ready.clear()
        self.state = ConnectionState.DISCONNECTED
        self.protocol.correlations.fail_all(self._auth_error or RConConnectionError("Connection closed"))
        if exc:
            refused = isinstance(exc, ConnectionRefusedError)
            self._dispatch(self.on_error, RConConnectionError(f"Connection to {self._target()} lost: {exc}", refused=refused))
        self.reconnect()
        if self.state != ConnectionState.RECONNECTING:
            self._fail_ready(RConConnectionError(f"Connection to {self._target()} closed"))

    # ============================
    # RECONNECT
    # ============================

    def _schedule_reconnect(self) -> bool:
        if not self.config.reconnect:
            return False
        task = self._reconnect_task
        if task and not task.done() and task is not asyncio.current_task():
            self.state = ConnectionState.RECONNECTING
            return False
        self.state = ConnectionState.RECONNECTING
        self.logger.info(f"Reconnecting to {self._target()} in {Const.RECONNECT_DELAY}s")
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_later(Const.RECONNECT_DELAY))
        return True

    async def _reconnect_later(self, delay: float):
        # The handle stays set through the dial so it can still be cancelled
        try:
            await asyncio.sleep(delay)
            await self.connect()
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None

    def _cancel_reconnect(self):
        if self._reconnect_task and not self._reconnect_task.done():
            self.logger.debug("Cancelling scheduled reconnect")
            self._reconnect_task.cancel()
            self._attempt += 1
            if self.state in (ConnectionState.RECONNECTING, ConnectionState.CONNECTING):
                self.state = ConnectionState.DISCONNECTED
            self._fail_ready(RConConnectionError(f"Reconnect to {self._target()} cancelled"))
        self._reconnect_task = None

    def _fail_ready(self, error: RConConnectionError):
        """Wake wait_until_ready() callers when no connection is coming"""
        self._ready_error = error
        self._ready.set()

    # ============================
    # AUTH & NOTIFICATIONS
    # ============================

    def _auth_received(self, success: bool):
        if success:
            self.state = ConnectionState.READY
            self._ready_error = None
            self._ready.set()
            self.logger.info(f"Authenticated with {self._target()}")
            self._dispatch(self.on_auth, True)
            return

        # Authentication failures are terminal, never retried
        self.logger.error(f"Password rejected by {self._target()}")
        error = RConAuthError(f"Password rejected by {self._target()}")
        self._auth_error = error
        self.set_reconnect(False)
        self.disconnect()
        self._ready.set()
        self._dispatch(self.on_auth, False)
        self._dispatch(self.on_error, error)

    def _dispatch(self, callback: Optional[Callable[..., Any]], *args):
        if callback is None:
            return
        try:
            result = callback(*args)
        except Exception as e:
            self.logger.error(f"Callback {getattr(callback, '__name__', callback)} raised: {e}")
            self.logger.error(traceback.format_exc())
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception():
            self.logger.error(f"Async callback raised: {task.exception()}")

    def _target(self) -> str:
        if self.config.transport == TransportKind.DIRECT:
            return f"{self.config.host}:{self.config.port}"
        return "custom transport"
