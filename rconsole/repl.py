"""
Interactive RCON console.

A thin front-end over RCon: it only uses the public connection operations and
the auth/error notifications.

Commands:
- .r <command>  Run a command and print the response (a bare line does the same)
- .d            Disconnect and stay disconnected
- .c            Connect, with reconnect enabled
- .q            Disconnect and quit

Example usage:
rconsole --host 127.0.0.1 --port 25575 --password secret
rconsole --config config.yaml
"""

import argparse
import asyncio
import logging
import sys
import threading
from typing import Optional

from colorama import Fore, Style, just_fix_windows_console

from .interface import RCon
from .api import RConConfig, Const
from .exceptions import RConError, RConConnectionError
from .utils import run_with_keyboard_interrupt

HELP = """\
.r <command>  run a command (a line without a leading dot does the same)
.d            disconnect
.c            connect
.q            quit"""


class RConREPL:
    def __init__(self, rcon: RCon, logger: Optional[logging.Logger] = None):
        self.rcon = rcon
        self.logger = logger or logging.getLogger(__name__)
        self.connected = False
        self._lines: asyncio.Queue = asyncio.Queue()
        rcon.on_auth = self._on_auth
        rcon.on_error = self._on_error

    def _on_auth(self, success: bool) -> None:
        # Rejection arrives through _on_error as well
        if success:
            self.connected = True
            print(Fore.GREEN + "Connected" + Style.RESET_ALL)

    def _on_error(self, error: Exception) -> None:
        if isinstance(error, RConConnectionError) and error.refused:
            if self.connected:
                print(Fore.YELLOW + "Connection Lost" + Style.RESET_ALL)
            self.connected = False
        else:
            print(Fore.RED + f"Error: {error}" + Style.RESET_ALL)

    async def handle_line(self, line: str) -> bool:
        """Handle one line of input. Returns False when the console should exit."""
        line = line.strip()
        if not line:
            return True
        if line.startswith("."):
            name, _, arg = line[1:].partition(" ")
        else:
            name, arg = "r", line

        match name:
            case "r":
                await self._run(arg.strip())
            case "d":
                self.rcon.set_reconnect(False)
                self.rcon.disconnect()
                self.connected = False
            case "c":
                self.rcon.set_reconnect(True)
                await self.rcon.connect()
            case "q":
                self.rcon.set_reconnect(False)
                self.rcon.disconnect()
                return False
            case "help" | "h":
                print(HELP)
            case _:
                print(Fore.RED + f"Unknown console command .{name}, try .help" + Style.RESET_ALL)
        return True

    async def _run(self, command: str) -> None:
        if not command:
            print("Usage: .r <command>")
            return
        try:
            result = await self.rcon.run_command(command)
        except RConError as e:
            print(Fore.RED + f"Error: {e}" + Style.RESET_ALL)
            return
        if result:
            print(Fore.CYAN + ">" + Style.RESET_ALL, result)

    def _read_stdin(self, loop: asyncio.AbstractEventLoop) -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(self._lines.put_nowait, line)
        loop.call_soon_threadsafe(self._lines.put_nowait, None)

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        # Daemon thread so a blocked read never holds up interpreter exit
        threading.Thread(target=self._read_stdin, args=(loop,), daemon=True).start()
        await self.rcon.connect()
        try:
            while True:
                line = await self._lines.get()
                if line is None or not await self.handle_line(line):
                    break
        finally:
            await self.rcon.close()


def build_config(args: argparse.Namespace) -> RConConfig:
    if args.config:
        config = RConConfig.from_yaml(args.config)
    else:
        config = RConConfig(host=args.host, port=args.port, password=args.password or "")
    if args.no_reconnect:
        config.reconnect = False
    return config


def main() -> None:
    ap = argparse.ArgumentParser(description="Interactive RCON console")
    ap.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    ap.add_argument("--port", type=int, default=Const.DEFAULT_PORT, help=f"Server RCON port (default: {Const.DEFAULT_PORT})")
    ap.add_argument("--password", help="RCON password")
    ap.add_argument("--config", help="YAML file with an 'rcon' section; overrides host/port/password")
    ap.add_argument("--no-reconnect", action="store_true", help="Don't reconnect when the connection drops")
    ap.add_argument("--print-traffic", action="store_true", help="Print every packet sent and received")
    ap.add_argument("--debug", action="store_true", help="Debug logging")
    args = ap.parse_args()

    just_fix_windows_console()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    async def _main():
        rcon = RCon(build_config(args), print_traffic=args.print_traffic)
        await RConREPL(rcon).run()

    run_with_keyboard_interrupt(_main)


if __name__ == "__main__":
    main()
