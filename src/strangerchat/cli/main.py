"""
strangerchat CLI: `strangerchat` command.

Commands:
  strangerchat chat        Interactive random-pairing chat
"""

import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install strangerchat[cli]")

from strangerchat import __version__

console = Console()

NOISY_LOGGERS = ("aioice", "aiortc", "engineio", "socketio")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
def main(verbose: bool):
    """strangerchat: talk to a random stranger."""
    _setup_logging(verbose)


from strangerchat.cli.chat import chat_cmd

main.add_command(chat_cmd)


if __name__ == "__main__":
    main()
