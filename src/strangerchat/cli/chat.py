"""CLI: strangerchat chat"""

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from strangerchat.client import AsyncStrangerChat
from strangerchat.cli.render import ConsoleRenderer
from strangerchat.config import load_config
from strangerchat.errors import StrangerChatError

console = Console()


@click.command("chat")
@click.option("-s", "--server", "server_url", default=None, help="Relay server URL.")
@click.option("-c", "--config", "config_path", type=click.Path(path_type=Path), default=None)
@click.option("--video-device", default=None, help="e.g. /dev/video0")
@click.option("--video-format", default=None, help="e.g. v4l2, avfoundation, dshow")
@click.option("--audio-device", default=None, help="e.g. default")
@click.option("--audio-format", default=None, help="e.g. pulse, alsa")
@click.option("--record", "record_path", default=None, help="Write the stranger's media to this file.")
@click.option("--no-media", is_flag=True, help="Text only; do not open capture devices.")
def chat_cmd(
    server_url: Optional[str],
    config_path: Optional[Path],
    video_device: Optional[str],
    video_format: Optional[str],
    audio_device: Optional[str],
    audio_format: Optional[str],
    record_path: Optional[str],
    no_media: bool,
):
    """Talk to a random stranger."""
    try:
        config = load_config(config_path).merged(
            server_url=server_url,
            video_device=video_device,
            video_format=video_format,
            audio_device=audio_device,
            audio_format=audio_format,
            record_path=record_path,
        )
    except StrangerChatError as e:
        raise click.ClickException(str(e))

    async def _chat():
        client = AsyncStrangerChat(config, ConsoleRenderer(console), capture_media=not no_media)
        with console.status(f"Connecting to {config.server_url}..."):
            await client.connect()
        try:
            while True:
                line = await asyncio.to_thread(console.input)
                command = line.strip().lower()
                if command in ("/quit", "/exit"):
                    break
                if command in ("/start", "/next"):
                    client.start()
                elif command == "/stop":
                    if client.machine.confirm_pending:
                        client.confirm_stop()
                    else:
                        client.stop()
                else:
                    client.input_changed(line)
                    client.send(line)
        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            await client.disconnect()

    try:
        asyncio.run(_chat())
    except StrangerChatError as e:
        raise click.ClickException(str(e))
