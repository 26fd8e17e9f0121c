"""AsyncStrangerChat wiring."""

import pytest

from strangerchat.client import AsyncStrangerChat
from strangerchat.config import ClientConfig
from strangerchat.errors import TransportLoss
from strangerchat.models.session import SessionState
from strangerchat.transport.socketio import SignalingChannel

from conftest import FakeSocketIOClient, LOCAL_ID, RecordingRenderer


def make_client():
    sio = FakeSocketIOClient()
    channel = SignalingChannel("http://relay.test", client=sio)
    renderer = RecordingRenderer()
    client = AsyncStrangerChat(ClientConfig(), renderer, capture_media=False, channel=channel)
    return client, sio, renderer


@pytest.mark.asyncio
async def test_start_requires_connection():
    client, _, _ = make_client()
    with pytest.raises(TransportLoss):
        client.start()
    assert client.state is SessionState.IDLE


@pytest.mark.asyncio
async def test_server_events_drive_the_session():
    client, sio, renderer = make_client()
    await client.connect()
    await sio.handlers["*"]("numberOfOnline", 42)
    assert client.online_count == 42

    client.start()
    await client.channel.flush()
    assert sio.emitted == [("start", LOCAL_ID)]
    assert client.state is SessionState.SEARCHING

    await sio.handlers["*"]("strangerDisconnected", "Stranger has disconnected.")
    assert client.state is SessionState.ENDED
    await client.disconnect()
    assert not client.connected


@pytest.mark.asyncio
async def test_dropped_transport_ends_search():
    client, sio, renderer = make_client()
    await client.connect()
    client.start()
    await sio.drop("transport close")
    assert client.state is SessionState.ENDED
    assert renderer.calls[-1][1].start
