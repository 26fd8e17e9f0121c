"""
Client configuration.

Read from ~/.strangerchat/config.json when present; CLI options override.
Nothing is ever written back.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from strangerchat.errors import ConfigError

CONFIG_FILE = Path.home() / ".strangerchat" / "config.json"
DEFAULT_SERVER_URL = "http://localhost:3000"
DEFAULT_STUN_URL = "stun:stun.l.google.com:19302"


class IceServerConfig(BaseModel):
    """One STUN or TURN entry. TURN needs username and credential."""
    urls: Union[str, list[str]]
    username: Optional[str] = None
    credential: Optional[str] = None


class ClientConfig(BaseModel):
    server_url: str = DEFAULT_SERVER_URL
    socketio_path: str = "socket.io"
    transports: list[str] = Field(default_factory=lambda: ["websocket", "polling"])
    connect_timeout: float = 15.0
    reconnection: bool = False

    ice_servers: list[IceServerConfig] = Field(
        default_factory=lambda: [IceServerConfig(urls=DEFAULT_STUN_URL)]
    )
    negotiation_timeout: Optional[float] = 30.0

    # Capture devices, opened with FFmpeg through aiortc's MediaPlayer
    video_device: Optional[str] = None
    video_format: Optional[str] = None
    video_options: dict[str, str] = Field(default_factory=dict)
    audio_device: Optional[str] = None
    audio_format: Optional[str] = None

    # Remote media is written here when set, discarded otherwise
    record_path: Optional[str] = None

    def merged(self, **overrides: Any) -> "ClientConfig":
        """Return a copy with every non-None override applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        try:
            return ClientConfig.model_validate({**self.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration override: {e}")


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """Load the JSON config file. A missing file yields the defaults."""
    path = path or CONFIG_FILE
    try:
        raw = json.loads(path.read_text())
    except FileNotFoundError:
        return ClientConfig()
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    try:
        return ClientConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"{path} has invalid settings: {e}")
