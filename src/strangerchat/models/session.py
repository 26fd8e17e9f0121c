"""
Session lifecycle models.
"""

from enum import Enum

from pydantic import BaseModel


class SessionState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    PAIRED = "paired"
    ENDED = "ended"


class ChatMessage(BaseModel):
    """A chat line as rendered. Not retained after rendering."""
    sender_is_self: bool
    text: str
