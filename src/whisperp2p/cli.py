"""
whisperp2p/cli.py

Interactive terminal front end.

Run with:
    whisperp2p -p 9000
    python -m whisperp2p -p 9001 --dial 127.0.0.1:9000

Typed lines are broadcast to the network. Commands:
    /dial HOST:PORT        connect to a peer
    /setnick HOST:PORT N   show messages from that address as N
    /peers                 list outbound links
    /quit                  leave
"""

import logging
import sys
from typing import Callable, Optional

import click
import trio

from .config import NodeConfig, parse_addr, parse_listen_port, resolve_local_ip
from .errors import ConfigError
from .nicknames import NicknameBook
from .node import Node
from .protocol.messages import Whisper

logger = logging.getLogger("whisperp2p.cli")

BANNER = "--- whisperp2p ---"


def bold(text: str) -> str:
    return click.style(text, bold=True)


def status_line(text: str) -> str:
    return click.style(f"[{text}]", fg="blue")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


class Console:
    """
    Turns typed lines into node operations and received messages into text.

    Args:
        node: Node to drive
        echo: Output function (``click.echo`` by default)
    """

    def __init__(self, node: Node, echo: Callable[[str], None] = click.echo):
        self.node = node
        self.echo = echo
        self.nicknames = NicknameBook(node.local_addr)

    def status(self, text: str) -> None:
        self.echo(status_line(text))

    def show_message(self, whisper: Whisper) -> None:
        """Print one received message as ``[label] body``."""
        label = f"[{self.nicknames.label(whisper.origin_addr)}]"
        self.echo(f"{bold(label)} {whisper.body}")

    def handle_line(self, line: str) -> bool:
        """
        Process one line of input.

        Returns:
            False when the user asked to quit, True otherwise
        """
        text = line.strip()
        if not text:
            return True
        if text.startswith("/"):
            return self.handle_command(text)
        self.node.submit_local_message(text)
        return True

    def handle_command(self, text: str) -> bool:
        parts = text.split()
        command = parts[0].lower()
        args = parts[1:]

        if command == "/dial":
            if len(args) != 1:
                self.status("Usage: /dial HOST:PORT")
                return True
            try:
                parse_addr(args[0])
            except ValueError as e:
                self.status(str(e))
                return True
            self.node.connect_to_peer(args[0])
        elif command == "/setnick":
            if len(args) != 2:
                self.status("Usage: /setnick HOST:PORT NICK")
                return True
            self.nicknames.set(args[0], args[1])
            self.status(f"{args[0]} nicknamed {args[1]}")
        elif command == "/peers":
            peers = self.node.get_connected_peers()
            if not peers:
                self.status("No peers connected")
            for addr in peers:
                self.status(f"{addr} {self.nicknames.label(addr)}")
        elif command in ("/quit", "/exit"):
            return False
        else:
            self.status(f"Unknown command {command}")
        return True

    async def read_input(self, readline: Optional[Callable[[], str]] = None) -> None:
        """Feed stdin lines to ``handle_line`` until EOF or ``/quit``."""
        readline = readline or sys.stdin.readline
        while True:
            line = await trio.to_thread.run_sync(readline, abandon_on_cancel=True)
            if not line:
                return
            if not self.handle_line(line):
                return


async def run_node(config: NodeConfig) -> None:
    """Run a node with the interactive console until input ends."""
    node = Node(config)
    async with trio.open_nursery() as nursery:
        await nursery.start(node.run)
        console = Console(node)
        node.subscribe(console.show_message)
        console.status(f"Local address: {node.local_addr}")
        console.status(f"Listening on {config.listen_host}:{node.listen_port}")
        await console.read_input()
        node.stop()


@click.command()
@click.option("-p", "--port", "port", required=True, help="Listen port")
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to listen on")
@click.option("--advertise-host", default=None, help="Host advertised to peers (default: resolve hostname)")
@click.option("--dial", "dial", multiple=True, help="Peer HOST:PORT to connect to at startup (repeatable)")
@click.option(
    "--log-level",
    default="INFO",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
def main(port: str, host: str, advertise_host: Optional[str], dial, log_level: str) -> None:
    """Peer-to-peer flood-broadcast chat node."""
    try:
        listen_port = parse_listen_port(port)
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="'-p'")

    config = NodeConfig(
        listen_host=host,
        listen_port=listen_port,
        advertise_host=advertise_host,
        bootstrap_peers=list(dial),
        log_level=log_level.upper(),
    )
    try:
        config.validate()
        if config.advertise_host is None:
            config.advertise_host = resolve_local_ip()
    except ConfigError as e:
        raise click.ClickException(str(e))

    configure_logging(config.log_level)
    click.echo(bold(BANNER))

    failure: Optional[BaseException] = None
    try:
        trio.run(run_node, config)
    except* (ConfigError, OSError) as group:
        failure = group.exceptions[0]
    except* KeyboardInterrupt:
        pass
    if failure is not None:
        raise click.ClickException(str(failure))
