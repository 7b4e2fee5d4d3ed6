import httpx
import pytest

from services.network_monitor import NetworkMonitor


def test_listener_receives_current_status_and_transitions():
    monitor = NetworkMonitor(probe_url="", initial=False)
    seen = []

    unsubscribe = monitor.add_listener(lambda status: seen.append(status.is_connected))
    monitor.set_connected(True, network_type="wifi")
    unsubscribe()
    monitor.set_connected(False)

    assert seen == [False, True]
    assert monitor.is_connected is False
    assert monitor.get_status().type == "none"


def test_failing_listener_does_not_block_others():
    monitor = NetworkMonitor(probe_url="")
    seen = []

    def broken(status):
        if not status.is_connected:
            raise RuntimeError("listener bug")

    monitor.add_listener(broken)
    monitor.add_listener(lambda status: seen.append(status.is_connected))
    monitor.set_connected(False)

    assert seen == [True, False]


@pytest.mark.asyncio
async def test_probe_reports_reachability():
    reachable = NetworkMonitor(
        probe_url="https://demo.supabase.co",
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
    )

    def refuse(request):
        raise httpx.ConnectError("offline", request=request)

    unreachable = NetworkMonitor(
        probe_url="https://demo.supabase.co",
        transport=httpx.MockTransport(refuse),
    )

    assert await reachable.check() is True
    assert await unreachable.check() is False


@pytest.mark.asyncio
async def test_start_applies_first_probe_result():
    def refuse(request):
        raise httpx.ConnectError("offline", request=request)

    monitor = NetworkMonitor(
        probe_url="https://demo.supabase.co",
        probe_interval_sec=60,
        transport=httpx.MockTransport(refuse),
    )
    await monitor.start()
    try:
        assert monitor.is_connected is False
    finally:
        await monitor.stop()
