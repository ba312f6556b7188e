import asyncio
from typing import Dict, List, Set, Union
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from nutwatch.config import MonitorConfig, settings
from nutwatch.core.ports import Notifier, Presenter


# Skip integration tests unless explicitly enabled
def pytest_addoption(parser):
    parser.addoption("--integration", action="store_true", default=False, help="Run integration tests")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


Reply = Union[str, List[str]]


class FakeUPSD:
    """
    Minimal in-process upsd: answers each command line from a lookup table.

    Commands in ``silent`` get no reply, commands in ``hangup`` close the
    connection instead of replying. A command in ``delays`` has its next
    reply held back for that many seconds, once.
    """

    def __init__(self):
        self.responses: Dict[str, Reply] = {
            "USERNAME monitor": "OK",
            "PASSWORD secret": "OK",
            "GET VAR ups ups.status": 'VAR ups ups.status "OL"',
            "GET VAR ups battery.charge": 'VAR ups battery.charge "87"',
        }
        self.silent: Set[str] = set()
        self.hangup: Set[str] = set()
        self.delays: Dict[str, float] = {}
        self.commands: List[str] = []
        self.host = "127.0.0.1"
        self.port = 0
        self._server = None
        self._writers: List[asyncio.StreamWriter] = []

    async def start(self):
        self._server = await asyncio.start_server(self._handle, self.host, 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self):
        for writer in self._writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()

    async def wait_for_command(self, command: str, timeout: float = 1.0) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while command not in self.commands:
            if loop.time() > deadline:
                return False
            await asyncio.sleep(0.01)
        return True

    async def _handle(self, reader, writer):
        self._writers.append(writer)
        try:
            while True:
                raw = await reader.readline()
                if not raw:
                    break
                command = raw.decode().strip()
                self.commands.append(command)
                if command in self.silent:
                    continue
                if command in self.hangup:
                    break
                if command in self.delays:
                    await asyncio.sleep(self.delays.pop(command))
                if command == "LOGOUT":
                    writer.write(b"OK Goodbye\n")
                    await writer.drain()
                    break
                reply = self.responses.get(command, "ERR UNKNOWN-COMMAND")
                lines = reply if isinstance(reply, list) else [reply]
                writer.write(("\n".join(lines) + "\n").encode())
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()


@pytest_asyncio.fixture
async def upsd():
    server = FakeUPSD()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def monitor_config():
    return MonitorConfig(
        host="127.0.0.1",
        port=3493,
        ups_name="ups",
        poll_interval=10,
        shutdown_delay=60000,
    )


@pytest.fixture
def presenter():
    return MagicMock(spec=Presenter)


@pytest.fixture
def notifier():
    return MagicMock(spec=Notifier)


@pytest.fixture
def executor():
    mock = AsyncMock()
    mock.perform_shutdown.return_value = "ok"
    return mock


@pytest.fixture
def isolated_settings(monkeypatch, tmp_path):
    """Point lock file, autostart dir and config path into tmp_path."""
    monkeypatch.setattr(settings, "LOCK_FILE", tmp_path / "nutwatch.lock")
    monkeypatch.setattr(settings, "AUTOSTART_DIR", tmp_path / "autostart")
    monkeypatch.setattr(settings, "CONFIG_PATH", tmp_path / "config.json")
    return settings
