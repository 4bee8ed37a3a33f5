"""Transport tests."""

import pytest

from bucketcrew.config import BucketCrewConfig
from bucketcrew.contracts import RunRequest
from bucketcrew.transports import InMemoryTransport, get_transport


def _request(run_id: str = "run-1") -> RunRequest:
    return RunRequest(
        run_id=run_id,
        workspace_id="ws-1",
        template_id="research-sprint",
        user_input={"business_description": "Bakery"},
        file_ids=["file-1"],
    )


@pytest.mark.asyncio
async def test_inmemory_transport_basic():
    """Publish/subscribe round trip with acknowledgement."""
    transport = InMemoryTransport()
    request = _request()

    await transport.publish("runs", request)
    assert transport.pending("runs") == 1

    message_received = False
    async for raw_msg, received in transport.subscribe("runs", lifespan=1):
        assert received.run_id == "run-1"
        assert received.user_input["business_description"] == "Bakery"
        assert RunRequest.from_json(raw_msg[0]) == received
        await transport.ack(raw_msg)
        message_received = True
        break

    assert message_received
    assert transport.acked == [request.message_id]
    assert transport.pending("runs") == 0


@pytest.mark.asyncio
async def test_inmemory_transport_keeps_queues_apart_and_in_order():
    transport = InMemoryTransport()
    await transport.publish("runs", _request("a"))
    await transport.publish("other", _request("x"))
    await transport.publish("runs", _request("b"))

    received = [req.run_id async for _, req in transport.subscribe("runs", lifespan=0.2)]

    assert received == ["a", "b"]
    assert transport.pending("other") == 1


@pytest.mark.asyncio
async def test_nack_defaults_to_ack():
    transport = InMemoryTransport()
    request = _request()
    await transport.nack(("{}", request))
    assert transport.acked == [request.message_id]


def test_get_transport_selects_backend(monkeypatch):
    monkeypatch.delenv("BUCKETCREW_TRANSPORT", raising=False)
    assert isinstance(get_transport(config=BucketCrewConfig()), InMemoryTransport)
    with pytest.raises(ValueError):
        get_transport("carrier-pigeon", config=BucketCrewConfig())


@pytest.mark.asyncio
async def test_redis_transport_import():
    """Redis transport is importable even when redis is not installed."""
    try:
        from bucketcrew.transports.redis import RedisTransport

        try:
            transport = RedisTransport()
            assert transport.host == "localhost"
            assert transport.port == 6379
            assert RedisTransport.queue_key("runs") == "bucketcrew:runs"
        except ImportError:
            pass
    except ImportError:
        pytest.fail("RedisTransport should be importable")
