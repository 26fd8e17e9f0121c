"""
Presence view: projects session state and online count onto a renderer.

Control enablement is a pure function of the session state; the only thing
the view remembers is the latest online count.
"""

from dataclasses import dataclass
from typing import Optional

from strangerchat.models.session import ChatMessage, SessionState


@dataclass(frozen=True)
class Controls:
    start: bool = False
    stop: bool = False
    confirm_stop: bool = False
    input: bool = False
    send: bool = False
    searching: bool = False


def controls_for(state: SessionState, confirm_pending: bool = False) -> Controls:
    if state is SessionState.SEARCHING:
        return Controls(searching=True)
    if state is SessionState.PAIRED:
        return Controls(
            stop=not confirm_pending,
            confirm_stop=confirm_pending,
            input=True,
            send=True,
        )
    return Controls(start=True)


class Renderer:
    """Drawing surface. The default implementation draws nothing."""

    def render_online(self, count: int) -> None:
        pass

    def render_controls(self, controls: Controls) -> None:
        pass

    def show_notice(self, text: str) -> None:
        pass

    def show_chat(self, message: ChatMessage) -> None:
        pass

    def show_typing(self, text: str) -> None:
        pass

    def clear_typing(self) -> None:
        pass

    def clear_conversation(self) -> None:
        pass

    def clear_input(self) -> None:
        pass

    def media_attached(self, kind: str) -> None:
        pass

    def media_detached(self) -> None:
        pass


class PresenceView:
    def __init__(self, renderer: Optional[Renderer] = None):
        self.renderer = renderer or Renderer()
        self.online_count: Optional[int] = None
        self.controls = controls_for(SessionState.IDLE)

    def render_online(self, count: int) -> None:
        self.online_count = count
        self.renderer.render_online(count)

    def render_state(self, state: SessionState, confirm_pending: bool = False) -> None:
        self.controls = controls_for(state, confirm_pending)
        self.renderer.render_controls(self.controls)

    def show_searching(self, text: str) -> None:
        self.renderer.clear_conversation()
        self.renderer.show_notice(text)

    def show_paired(self, text: str) -> None:
        self.renderer.clear_conversation()
        self.renderer.show_notice(text)

    def show_chat(self, message: ChatMessage) -> None:
        self.renderer.show_chat(message)

    def show_typing(self, text: str) -> None:
        self.renderer.show_typing(text)

    def clear_typing(self) -> None:
        self.renderer.clear_typing()

    def show_ended(self, text: str) -> None:
        """One terminal notice, then the chat surface goes back to idle."""
        self.renderer.show_notice(text)
        self.renderer.clear_typing()
        self.renderer.clear_input()
        self.renderer.media_detached()

    def clear_input(self) -> None:
        self.renderer.clear_input()

    def media_attached(self, kind: str) -> None:
        self.renderer.media_attached(kind)
