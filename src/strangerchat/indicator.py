"""
Local typing indicator.

Emits `typing` once per empty-to-non-empty streak and `doneTyping` when the
input empties or loses focus.
"""

from typing import Callable

from strangerchat.models.events import C2SEvent, TYPING_HINT

Send = Callable[..., None]


class TypingIndicator:
    def __init__(self, send: Send):
        self._send = send
        self.already_typing = False

    def changed(self, value: str) -> None:
        if value == "":
            self.blurred()
        elif not self.already_typing:
            self._send(C2SEvent.TYPING, TYPING_HINT)
            self.already_typing = True

    def clicked(self, value: str) -> None:
        if value != "" and not self.already_typing:
            self._send(C2SEvent.TYPING, TYPING_HINT)
            self.already_typing = True

    def blurred(self) -> None:
        if self.already_typing:
            self._send(C2SEvent.DONE_TYPING)
        self.already_typing = False

    def reset(self) -> None:
        self.already_typing = False
