"""
NUT (Network UPS Tools) protocol client.

This module provides an asynchronous client for the line-oriented upsd
protocol, built on asyncio streams. One client owns one connection; commands
are sent one at a time and each waits for its response line under a short
deadline. Replies that arrive after their deadline are skipped by the next
matching read.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3493

# Returned by get_var when a value cannot be read or parsed
UNKNOWN = "?"


class NUTError(Exception):
    """Base exception for NUT client errors."""
    pass


class NUTConnectError(NUTError):
    """The TCP connection to upsd could not be established."""
    pass


class NUTAuthError(NUTError):
    """upsd rejected the credentials, or the exchange failed."""
    pass


class NUTIOError(NUTError):
    """A single command failed to write, read, or timed out."""
    pass


class NUTProtocolError(NUTError):
    """upsd answered a command with an ERR line or an unexpected reply."""
    pass


def _mask(command: str) -> str:
    if command.startswith("PASSWORD "):
        return "PASSWORD ****"
    return command


class NUTClient:
    """
    An asynchronous client for a single upsd connection.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        timeout: float = 2.0,
        connect_timeout: float = 10.0,
    ):
        """
        Initialize the NUT client.

        Args:
            host: The NUT server hostname or IP address.
            port: The NUT server port.
            timeout: Read deadline for each command response, in seconds.
            connect_timeout: Deadline for establishing the connection.
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.authenticated = False
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """
        Open the TCP connection to upsd.

        Raises:
            NUTConnectError: If the connection cannot be established.
        """
        logger.info("Connecting to NUT server %s:%s", self.host, self.port)
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise NUTConnectError(f"Failed to connect to {self.host}:{self.port}: {e}") from e
        self.authenticated = False
        logger.info("Connected to NUT server %s:%s", self.host, self.port)

    async def authenticate(self, username: Optional[str], password: Optional[str]) -> None:
        """
        Log in with USERNAME/PASSWORD.

        An empty username skips the exchange; upsd allows anonymous reads.

        Raises:
            NUTAuthError: If either step fails or is not answered with OK.
        """
        if not username:
            logger.debug("No username configured, using anonymous session")
            return

        for command in (f"USERNAME {username}", f"PASSWORD {password or ''}"):
            verb = command.split(" ", 1)[0]
            try:
                response = await self.send_command(command)
            except NUTIOError as e:
                raise NUTAuthError(f"{verb} failed: {e}") from e
            if not response.startswith("OK"):
                raise NUTAuthError(f"{verb} rejected by server: {response or '<empty>'}")

        self.authenticated = True
        logger.info("Authenticated to NUT server as '%s'", username)

    async def send_command(self, command: str, accept: Optional[Callable[[str], bool]] = None) -> str:
        """
        Send one command line and return the trimmed response line.

        Args:
            command: The command line, without the newline.
            accept: Optional reply matcher. Lines it rejects are left over
                from an earlier command that timed out and are skipped, all
                within the same deadline.

        Raises:
            NUTIOError: On write or read failure, EOF, or when the response
                does not arrive within the deadline.
        """
        async with self._lock:
            if not self.connected:
                raise NUTIOError("Not connected to NUT server")
            self._write(command)
            try:
                await self._writer.drain()
            except OSError as e:
                raise NUTIOError(f"Failed to send '{_mask(command)}': {e}") from e

            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.timeout
            while True:
                line = await self._read_line(command, max(deadline - loop.time(), 0))
                if accept is None or accept(line):
                    return line
                logger.debug("Discarding stale reply while waiting for '%s': %s", _mask(command), line)

    async def get_var(self, ups_name: str, var: str) -> str:
        """
        Read a single variable for a specific UPS.

        Args:
            ups_name: The name of the UPS device.
            var: The name of the variable to fetch.

        Returns:
            The first quoted segment of the response, or UNKNOWN if the
            command failed or the reply had no quoted value. A value that
            itself contains a quote comes back truncated at that quote.
        """
        prefix = f"VAR {ups_name} {var} "
        try:
            response = await self.send_command(
                f"GET VAR {ups_name} {var}",
                accept=lambda line: line.startswith(prefix) or line.startswith("ERR"),
            )
        except NUTIOError as e:
            logger.warning("Reading '%s' for UPS '%s' failed: %s", var, ups_name, e)
            return UNKNOWN

        parts = response.split('"')
        if len(parts) < 2:
            logger.warning("Unexpected reply for '%s' on UPS '%s': %s", var, ups_name, response)
            return UNKNOWN
        return parts[1]

    async def list_ups(self) -> Dict[str, str]:
        """
        List the UPS devices known to the server.

        Returns:
            UPS name mapped to its description.

        Raises:
            NUTIOError: On connection trouble.
            NUTProtocolError: If upsd answers with ERR.
        """
        lines = await self._list("LIST UPS", "UPS")
        devices = {}
        for line in lines:
            # UPS <name> "<description>"
            fields = line.split(" ", 2)
            if len(fields) < 2:
                continue
            description = fields[2].strip('"') if len(fields) > 2 else ""
            devices[fields[1]] = description
        return devices

    async def list_vars(self, ups_name: str) -> Dict[str, str]:
        """
        Read every variable of a UPS.

        Raises:
            NUTIOError: On connection trouble.
            NUTProtocolError: If upsd answers with ERR (e.g. UNKNOWN-UPS).
        """
        lines = await self._list(f"LIST VAR {ups_name}", f"VAR {ups_name}")
        variables = {}
        for line in lines:
            # VAR <ups> <name> "<value>"
            fields = line.split(" ", 3)
            if len(fields) < 4:
                continue
            parts = fields[3].split('"')
            variables[fields[2]] = parts[1] if len(parts) >= 2 else fields[3]
        return variables

    async def close(self) -> None:
        """Say LOGOUT and close the connection."""
        if self._writer is None:
            return
        writer = self._writer
        self._reader = None
        self._writer = None
        self.authenticated = False
        try:
            if not writer.is_closing():
                writer.write(b"LOGOUT\n")
                await writer.drain()
            writer.close()
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error while closing NUT connection: %s", e)
        logger.info("Disconnected from NUT server %s:%s", self.host, self.port)

    def _write(self, command: str) -> None:
        logger.debug("Sent to upsd: %s", _mask(command))
        try:
            self._writer.write((command + "\n").encode())
        except OSError as e:
            raise NUTIOError(f"Failed to send '{_mask(command)}': {e}") from e

    async def _read_line(self, command: str, timeout: Optional[float] = None) -> str:
        if timeout is None:
            timeout = self.timeout
        try:
            raw = await asyncio.wait_for(self._reader.readline(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise NUTIOError(f"Timed out waiting for reply to '{_mask(command)}'") from e
        except (OSError, ValueError) as e:
            raise NUTIOError(f"Failed to read reply to '{_mask(command)}': {e}") from e
        if not raw:
            raise NUTIOError("Connection closed by NUT server")
        line = raw.decode("utf-8", errors="replace").strip()
        logger.debug("Received from upsd: %s", line)
        return line

    async def _list(self, command: str, item_prefix: str) -> List[str]:
        async with self._lock:
            if not self.connected:
                raise NUTIOError("Not connected to NUT server")
            self._write(command)
            try:
                await self._writer.drain()
            except OSError as e:
                raise NUTIOError(f"Failed to send '{command}': {e}") from e

            first = await self._read_line(command)
            if first.startswith("ERR"):
                raise NUTProtocolError(f"'{command}' failed: {first}")
            if not first.startswith("BEGIN " + command):
                raise NUTProtocolError(f"Unexpected reply to '{command}': {first}")

            items = []
            while True:
                line = await self._read_line(command)
                if line.startswith("END " + command):
                    return items
                if line.startswith(item_prefix + " "):
                    items.append(line)
