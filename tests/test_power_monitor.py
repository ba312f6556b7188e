"""
Tests for the polling loop and power-state machine.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from nutwatch.nut.client import UNKNOWN, NUTAuthError, NUTClient, NUTConnectError
from nutwatch.nut.events import CONNECTION_FAILED_TEXT
from nutwatch.nut.models import PowerState
from nutwatch.nut.poller import PowerMonitor
from nutwatch.shutdown.scheduler import ShutdownScheduler, TimerState


def scripted_client(statuses, charge="55"):
    """A NUTClient mock that returns the given ups.status values in order."""
    client = AsyncMock(spec=NUTClient)
    status_iter = iter(statuses)

    async def get_var(ups_name, var):
        if var == "ups.status":
            return next(status_iter)
        return charge

    client.get_var.side_effect = get_var
    return client


def titles(notifier):
    return [c.args[0] for c in notifier.notify.call_args_list]


@pytest.fixture
def scheduler(executor, notifier):
    return ShutdownScheduler(executor=executor, notifier=notifier)


@pytest.fixture
def mock_scheduler():
    return AsyncMock(spec=ShutdownScheduler)


def test_monitor_initialization(monitor_config, presenter, notifier, mock_scheduler):
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler)
    assert monitor.state == PowerState.CONNECTING
    assert monitor.client.host == "127.0.0.1"
    assert monitor.client.port == 3493
    assert monitor.last_reading is None


@pytest.mark.asyncio
async def test_on_battery_arms_shutdown(monitor_config, presenter, notifier, scheduler, executor):
    """Scenario A: OB with 55% charge arms the countdown."""
    client = scripted_client(["OB"])
    monitor = PowerMonitor(monitor_config, presenter, notifier, scheduler, client=client)

    assert await monitor.poll_once() == PowerState.ON_BATTERY
    assert scheduler.state == TimerState.ARMED
    presenter.set_error.assert_called_once()
    assert titles(notifier) == ["Power failure"]
    assert "55%" in notifier.notify.call_args.args[1]
    presenter.set_tooltip.assert_called_with("UPS: ups\nStatus: On battery\nCharge: 55%")

    await scheduler.cancel()


@pytest.mark.asyncio
async def test_power_return_cancels_shutdown(monitor_config, presenter, notifier, scheduler, executor):
    """Scenario B: OL before the delay elapses cancels the countdown."""
    client = scripted_client(["OB", "OL"])
    monitor = PowerMonitor(monitor_config, presenter, notifier, scheduler, client=client)

    await monitor.poll_once()
    assert await monitor.poll_once() == PowerState.ONLINE

    assert scheduler.state == TimerState.IDLE
    presenter.set_connected.assert_called_once()
    assert titles(notifier) == ["Power failure", "Power supply", "Power restored"]

    await asyncio.sleep(0.01)
    executor.perform_shutdown.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_status_degrades(monitor_config, presenter, notifier, mock_scheduler):
    """Scenario C: an unreadable status moves to Degraded without touching the scheduler."""
    client = scripted_client([UNKNOWN], charge=UNKNOWN)
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    assert await monitor.poll_once() == PowerState.DEGRADED
    presenter.set_error.assert_called_once()
    presenter.set_tooltip.assert_called_with(CONNECTION_FAILED_TEXT)
    assert titles(notifier) == ["UPS connection problem"]
    mock_scheduler.arm.assert_not_awaited()
    mock_scheduler.cancel.assert_not_awaited()


@pytest.mark.asyncio
async def test_unrecognised_status_degrades_but_shows_status(monitor_config, presenter, notifier, mock_scheduler):
    client = scripted_client(["OFF"])
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    assert await monitor.poll_once() == PowerState.DEGRADED
    presenter.set_tooltip.assert_called_with("UPS: ups\nStatus: OFF\nCharge: 55%")


@pytest.mark.asyncio
async def test_degraded_read_keeps_countdown_running(monitor_config, presenter, notifier, scheduler):
    client = scripted_client(["OB", UNKNOWN, UNKNOWN])
    monitor = PowerMonitor(monitor_config, presenter, notifier, scheduler, client=client)

    await monitor.poll_once()
    await monitor.poll_once()
    await monitor.poll_once()

    assert monitor.state == PowerState.DEGRADED
    assert scheduler.state == TimerState.ARMED

    await scheduler.cancel()


@pytest.mark.asyncio
async def test_repeated_on_battery_arms_once(monitor_config, presenter, notifier, mock_scheduler):
    client = scripted_client(["OB", "OB", "OB LB", "OB"])
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    for _ in range(4):
        await monitor.poll_once()

    mock_scheduler.arm.assert_awaited_once()
    assert mock_scheduler.arm.await_args.args[0] == monitor_config.shutdown_delay
    assert titles(notifier) == ["Power failure"]


@pytest.mark.asyncio
async def test_repeated_online_cancels_once(monitor_config, presenter, notifier, mock_scheduler):
    client = scripted_client(["OL", "OL", "OL CHRG"])
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    for _ in range(3):
        await monitor.poll_once()

    mock_scheduler.cancel.assert_awaited_once()
    presenter.set_connected.assert_called_once()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "statuses, expected_restored",
    [
        (["OL"], 1),
        (["OL", "OL", "OL"], 1),
        (["OB", "OB"], 0),
        (["OL", "OB", "OL", "OB", "OL"], 3),
        (["OL", "OL", "OB", "OB", "OL", UNKNOWN, "OL", "OL CHRG", "OB LB", "OL"], 4),
        ([UNKNOWN, UNKNOWN, "OL", UNKNOWN], 1),
    ],
)
async def test_restored_notifications_match_transitions(
    monitor_config, presenter, notifier, mock_scheduler, statuses, expected_restored
):
    client = scripted_client(statuses)
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    for _ in statuses:
        await monitor.poll_once()

    assert titles(notifier).count("Power restored") == expected_restored


@pytest.mark.asyncio
async def test_start_connect_failure(monitor_config, presenter, notifier, mock_scheduler):
    client = AsyncMock(spec=NUTClient)
    client.connect.side_effect = NUTConnectError("Failed to connect to 127.0.0.1:3493")
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    with pytest.raises(NUTConnectError):
        await monitor.start()

    presenter.set_error.assert_called_once()
    assert "Cannot reach NUT server 127.0.0.1:3493" in presenter.set_tooltip.call_args.args[0]
    client.authenticate.assert_not_awaited()
    client.get_var.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_auth_failure_aborts_session(presenter, notifier, mock_scheduler, monitor_config):
    config = monitor_config.model_copy(update={"user": "monitor", "password": "wrong"})
    client = AsyncMock(spec=NUTClient)
    client.authenticate.side_effect = NUTAuthError("PASSWORD rejected by server: ERR ACCESS-DENIED")
    monitor = PowerMonitor(config, presenter, notifier, mock_scheduler, client=client)

    with pytest.raises(NUTAuthError):
        await monitor.run()

    client.authenticate.assert_awaited_once_with("monitor", "wrong")
    client.close.assert_awaited_once()
    client.get_var.assert_not_awaited()
    presenter.set_error.assert_called_once()
    assert titles(notifier) == ["UPS monitor"]


@pytest.mark.asyncio
@patch('asyncio.sleep', new_callable=AsyncMock)
async def test_poll_loop_survives_degraded_ticks(mock_sleep, monitor_config, presenter, notifier, mock_scheduler):
    client = AsyncMock(spec=NUTClient)
    client.get_var.return_value = UNKNOWN
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)

    # Third sleep ends the loop
    mock_sleep.side_effect = [None, None, asyncio.CancelledError()]

    with pytest.raises(asyncio.CancelledError):
        await monitor.run()

    assert monitor.ticks == 3
    assert monitor.state == PowerState.DEGRADED
    mock_sleep.assert_awaited_with(monitor_config.poll_interval / 1000.0)
    # Transition actions fire once, not on every degraded tick
    assert titles(notifier) == ["UPS connection problem"]


@pytest.mark.asyncio
@patch('asyncio.sleep', new_callable=AsyncMock)
async def test_poll_loop_survives_unexpected_errors(mock_sleep, monitor_config, presenter, notifier, mock_scheduler):
    client = AsyncMock(spec=NUTClient)
    monitor = PowerMonitor(monitor_config, presenter, notifier, mock_scheduler, client=client)
    mock_sleep.side_effect = [None, None, asyncio.CancelledError()]

    with patch.object(
        monitor, "poll_once", new_callable=AsyncMock,
        side_effect=[RuntimeError("boom"), PowerState.ONLINE, PowerState.ONLINE],
    ) as mock_poll:
        with pytest.raises(asyncio.CancelledError):
            await monitor.run()

    assert mock_poll.await_count == 3


@pytest.mark.asyncio
async def test_shutdown_callback_updates_display(monitor_config, presenter, notifier, scheduler, executor):
    config = monitor_config.model_copy(update={"shutdown_delay": 0})
    client = scripted_client(["OB"])
    monitor = PowerMonitor(config, presenter, notifier, scheduler, client=client)

    await monitor.poll_once()
    await asyncio.sleep(0.05)

    assert scheduler.state == TimerState.FIRED
    executor.perform_shutdown.assert_awaited_once()
    assert "Shutting down" in presenter.set_tooltip.call_args.args[0]
    assert titles(notifier)[-1] == "Shutdown"


@pytest.mark.asyncio
async def test_close_cancels_pending_shutdown(monitor_config, presenter, notifier, scheduler):
    client = scripted_client(["OB"])
    monitor = PowerMonitor(monitor_config, presenter, notifier, scheduler, client=client)

    await monitor.poll_once()
    await monitor.close()

    assert scheduler.state == TimerState.IDLE
    client.close.assert_awaited_once()
