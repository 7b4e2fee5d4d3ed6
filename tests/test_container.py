import json

import pytest

from core.container import build_services
from core.settings import SYNC
from services.network_monitor import NetworkMonitor
from services.resources import BOOKINGS, KNOWN_RESOURCES


@pytest.mark.asyncio
async def test_services_share_one_queue_and_store(session_factory, api):
    network = NetworkMonitor(probe_url="", initial=False)
    services = build_services(session_factory=session_factory, network=network, api=api)

    assert set(services.writers) == set(KNOWN_RESOURCES)
    assert services.writer(BOOKINGS) is services.writers[BOOKINGS]
    assert services.writer(BOOKINGS).queue is services.sync

    await services.start()
    try:
        await services.writer(BOOKINGS).create({"client": "Wanjiru", "pax": 2})
        assert services.sync.get_status().pending_operations == 1

        network.set_connected(True)
        await services.sync.wait_idle()
    finally:
        await services.stop()

    assert api.calls == [("create", "bookings", {"client": "Wanjiru", "pax": 2})]
    status = json.loads(services.storage.get(SYNC.status_key))
    assert status["successfulOperations"] == 1
    assert status["pendingOperations"] == 0
