"""SignalingChannel over a stand-in Socket.IO client."""

import pytest

from strangerchat.errors import TransportLoss
from strangerchat.transport.socketio import SignalingChannel

from conftest import FakeSocketIOClient, LOCAL_ID


def make_channel(client=None):
    client = client or FakeSocketIOClient()
    channel = SignalingChannel(
        "http://relay.test", socketio_path="socket.io", transports=["websocket"],
        connect_timeout=3.0, client=client,
    )
    return channel, client


class TestConnection:
    @pytest.mark.asyncio
    async def test_connect_passes_transport_options(self):
        channel, client = make_channel()
        await channel.connect()
        assert channel.connected
        assert channel.sid == LOCAL_ID
        url, kwargs = client.connect_args
        assert url == "http://relay.test"
        assert kwargs == {"transports": ["websocket"], "socketio_path": "socket.io", "wait_timeout": 3.0}

    @pytest.mark.asyncio
    async def test_refused_connection_is_transport_loss(self):
        client = FakeSocketIOClient()
        client.refuse = True
        channel, _ = make_channel(client)
        with pytest.raises(TransportLoss) as exc:
            await channel.connect()
        assert exc.value.code == "transport_lost"
        assert not channel.connected

    @pytest.mark.asyncio
    async def test_dropped_transport_is_reported(self):
        channel, client = make_channel()
        reasons = []
        channel.on_disconnect(reasons.append)
        await channel.connect()
        await client.drop("ping timeout")
        assert reasons == ["ping timeout"]

    @pytest.mark.asyncio
    async def test_own_disconnect_is_not_a_loss(self):
        channel, client = make_channel()
        reasons = []
        channel.on_disconnect(reasons.append)
        await channel.connect()
        await channel.disconnect()
        assert reasons == []
        assert not channel.connected


class TestInbound:
    @pytest.mark.asyncio
    async def test_events_reach_their_handler(self):
        channel, client = make_channel()
        received = []
        channel.on_event("chatStart", lambda payload: received.append(("chatStart", payload)))
        channel.on_event("strangerIsDoneTyping", lambda payload: received.append(("done", payload)))
        await channel.connect()
        await client.handlers["*"]("chatStart", "Say hi!")
        await client.handlers["*"]("strangerIsDoneTyping")
        await client.handlers["*"]("unhandled", 1)
        assert received == [("chatStart", "Say hi!"), ("done", None)]

    @pytest.mark.asyncio
    async def test_one_handler_per_event(self):
        channel, client = make_channel()
        first, second = [], []
        channel.on_event("searching", first.append)
        channel.on_event("searching", second.append)
        await channel.connect()
        await client.handlers["*"]("searching", "Looking...")
        assert first == []
        assert second == ["Looking..."]

    @pytest.mark.asyncio
    async def test_reserved_events_are_not_dispatched(self):
        channel, client = make_channel()
        received = []
        channel.on_event("connect", received.append)
        await channel.connect()
        await client.handlers["*"]("connect", None)
        assert received == []


class TestOutbound:
    @pytest.mark.asyncio
    async def test_sends_are_emitted_in_order(self):
        channel, client = make_channel()
        await channel.connect()
        channel.send("doneTyping")
        channel.send("newMessageToServer", "hello")
        await channel.flush()
        assert client.emitted == [("doneTyping", None), ("newMessageToServer", "hello")]

    def test_send_before_connect_raises(self):
        channel, _ = make_channel()
        with pytest.raises(TransportLoss):
            channel.send("start", LOCAL_ID)
