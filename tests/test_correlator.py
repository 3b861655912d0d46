import asyncio
import json

import pytest

from conduit.client.connection import Connection, receive, send
from conduit.client.correlator import Correlator, correlator_for, request
from conduit.client.transport import LoopbackTransport
from conduit.protocol import ApplicationError, ErrorCode, RequestTimeout, TransportError
from conduit.protocol.messages import build_result


class Peer:
    """Answering side that records inbound requests for the test to reply to."""

    def __init__(self, connection):
        self.connection = connection
        self.requests = []
        self.subscription = receive(connection, self._on_event)

    def _on_event(self, err, message):
        if message is not None:
            self.requests.append(message)

    def token(self, index):
        return self.requests[index].options["token"]

    async def reply(self, index, **record):
        await send(self.connection, {}, build_result(self.token(index), **record))


def _pair():
    left, right = LoopbackTransport.pair()
    return Connection(id=1, url="loop://1", transport=left), Connection(id=2, url="loop://2", transport=right)


async def _spin(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_request_frame_carries_route_token_and_options():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("window.send", {"event": "message"}, {"a": 1}))
    await _spin()

    options = peer.requests[0].options
    assert options["route"] == "window.send"
    assert options["event"] == "message"
    assert options["token"]
    assert json.loads(bytes(peer.requests[0].payload)) == {"a": 1}

    await peer.reply(0, data="done")
    assert await task == "done"


@pytest.mark.asyncio
async def test_responses_settle_by_token_not_order():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    calls = [asyncio.create_task(correlator.request("echo", {"n": str(i)})) for i in range(3)]
    await _spin()
    assert len({peer.token(i) for i in range(3)}) == 3
    assert correlator.pending == 3

    for index in (2, 0, 1):
        await peer.reply(index, data={"n": peer.requests[index].options["n"]})

    results = await asyncio.gather(*calls)
    assert results == [{"n": "0"}, {"n": "1"}, {"n": "2"}]
    assert correlator.pending == 0


@pytest.mark.asyncio
async def test_error_record_rejects_only_matching_call():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    failing = asyncio.create_task(correlator.request("a"))
    other = asyncio.create_task(correlator.request("b"))
    await _spin()

    await peer.reply(0, err={"message": "not allowed", "code": int(ErrorCode.NOT_FOUND)})
    with pytest.raises(ApplicationError) as info:
        await failing
    assert info.value.message == "not allowed"
    assert info.value.code == ErrorCode.NOT_FOUND
    assert not other.done()

    await peer.reply(1, data=[1, 2])
    assert await other == [1, 2]


@pytest.mark.asyncio
async def test_error_without_message_uses_raw_value():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    await peer.reply(0, err="plain failure")

    with pytest.raises(ApplicationError) as info:
        await task
    assert info.value.message == "plain failure"
    assert info.value.error == "plain failure"


@pytest.mark.asyncio
async def test_token_falls_back_to_frame_options():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    await send(server, {"token": peer.token(0)}, b'{"data": 5}')

    assert await task == 5


@pytest.mark.asyncio
async def test_response_without_data_resolves_whole_record():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    await send(server, {}, json.dumps({"token": peer.token(0), "message": "hello"}).encode())

    assert await task == {"token": peer.token(0), "message": "hello"}


@pytest.mark.asyncio
async def test_unrelated_and_unparseable_frames_are_ignored():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    await send(server, {}, b"line noise")
    await send(server, {}, build_result("someone-else", data=1))
    await server.transport.send(b"\x02\x01")
    await _spin()
    assert not task.done()
    assert correlator.pending == 1

    await peer.reply(0, data=2)
    assert await task == 2


@pytest.mark.asyncio
async def test_transport_error_rejects_every_pending_call():
    client, server = _pair()
    Peer(server)
    correlator = Correlator(client, timeout=None)

    calls = [asyncio.create_task(correlator.request("a")) for _ in range(3)]
    await _spin()
    client.transport.fail(TransportError("socket reset"))

    results = await asyncio.gather(*calls, return_exceptions=True)
    assert all(isinstance(result, TransportError) for result in results)
    assert correlator.pending == 0

    with pytest.raises(TransportError):
        await correlator.request("a")


@pytest.mark.asyncio
async def test_transport_error_closes_correlator_and_drops_listeners():
    client, server = _pair()
    Peer(server)
    correlator = Correlator(client, timeout=None)

    client.transport.fail(TransportError("socket reset"))

    assert correlator.closed
    assert client.transport.listener_count("message") == 0
    assert client.transport.listener_count("error") == 0
    assert client.transport.listener_count("close") == 0


@pytest.mark.asyncio
async def test_clean_peer_close_rejects_pending_call():
    client, server = _pair()
    Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    assert correlator.pending == 1

    await server.close()
    await asyncio.sleep(0.05)

    assert task.done()
    with pytest.raises(TransportError, match="Connection closed"):
        await task
    assert correlator.closed
    assert correlator.pending == 0
    assert client.transport.listener_count("close") == 0


@pytest.mark.asyncio
async def test_failed_correlator_is_replaced_for_connection():
    client, server = _pair()
    Peer(server)

    first = correlator_for(client)
    client.transport.fail(TransportError("socket reset"))

    assert correlator_for(client) is not first
    with pytest.raises(TransportError):
        await request(client, "a")


@pytest.mark.asyncio
async def test_timeout_rejects_and_releases_call():
    client, server = _pair()
    Peer(server)
    correlator = Correlator(client, timeout=None)

    with pytest.raises(RequestTimeout) as info:
        await correlator.request("slow", timeout=0.01)
    assert isinstance(info.value, TimeoutError)
    assert correlator.pending == 0


@pytest.mark.asyncio
async def test_late_response_after_timeout_is_ignored():
    client, server = _pair()
    peer = Peer(server)
    correlator = Correlator(client, timeout=0.01)

    with pytest.raises(RequestTimeout):
        await correlator.request("slow")
    await peer.reply(0, data="late")
    await _spin()
    assert correlator.pending == 0


@pytest.mark.asyncio
async def test_cancellation_releases_call():
    client, server = _pair()
    Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    assert correlator.pending == 1
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert correlator.pending == 0


@pytest.mark.asyncio
async def test_close_rejects_pending_and_disposes_listener():
    client, server = _pair()
    Peer(server)
    correlator = Correlator(client, timeout=None)

    task = asyncio.create_task(correlator.request("a"))
    await _spin()
    correlator.close()
    correlator.close()

    with pytest.raises(TransportError):
        await task
    assert client.transport.listener_count("message") == 0
    with pytest.raises(TransportError):
        await correlator.request("a")


@pytest.mark.asyncio
async def test_module_level_request_reuses_connection_correlator():
    client, server = _pair()
    peer = Peer(server)

    first = asyncio.create_task(request(client, "a"))
    await _spin()
    assert correlator_for(client) is client.correlator
    await peer.reply(0, data="one")
    assert await first == "one"

    second = asyncio.create_task(request(client, "b"))
    await _spin()
    await peer.reply(1, data="two")
    assert await second == "two"
    assert client.transport.listener_count("message") == 1
