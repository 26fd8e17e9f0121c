"""Terminal renderer."""

from rich.console import Console
from rich.markup import escape

from strangerchat.models.session import ChatMessage
from strangerchat.presence import Controls, Renderer


class ConsoleRenderer(Renderer):
    def __init__(self, console: Console):
        self._console = console
        self._last_hint = ""

    def render_online(self, count: int) -> None:
        self._console.print(f"[dim]{count:,} online now[/dim]")

    def render_controls(self, controls: Controls) -> None:
        if controls.start:
            hint = "/start to talk to a stranger, /quit to leave"
        elif controls.confirm_stop:
            hint = "/stop again to really stop"
        elif controls.stop:
            hint = "type to chat, /stop to end"
        else:
            hint = ""
        if hint and hint != self._last_hint:
            self._console.print(f"[cyan]{hint}[/cyan]")
        self._last_hint = hint

    def show_notice(self, text: str) -> None:
        if text:
            self._console.print(f"[bold]{escape(text)}[/bold]")

    def show_chat(self, message: ChatMessage) -> None:
        if message.sender_is_self:
            self._console.print(f"[blue]You:[/blue] {escape(message.text)}")
        else:
            self._console.print(f"[red]Stranger:[/red] {escape(message.text)}")

    def show_typing(self, text: str) -> None:
        self._console.print(f"[dim italic]{escape(text)}[/dim italic]")

    def clear_conversation(self) -> None:
        self._console.rule()

    def media_attached(self, kind: str) -> None:
        self._console.print(f"[dim]Receiving the stranger's {kind}[/dim]")
