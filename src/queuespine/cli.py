"""CLI entry point.

Connection settings come from QUEUESPINE_* environment variables (or a
``.env`` file); ``--type`` overrides the backend type.
"""

from __future__ import annotations

import asyncio
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from queuespine.core.config import get_settings
from queuespine.core.exceptions import QueueSpineError
from queuespine.core.logging import configure_logging
from queuespine.queue.factory import create_queue

app = typer.Typer(
    name="queuespine",
    help="One client for SQS, Kafka and RabbitMQ",
    no_args_is_help=True,
)
console = Console()


def _parse_attributes(values: list[str]) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {item!r}")
        attributes[key] = value
    return attributes


def _run(coro: Any) -> Any:
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        return asyncio.run(coro)
    except QueueSpineError as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(code=1) from e


async def _open(queue_type: str | None):
    overrides = {"queue_type": queue_type} if queue_type else {}
    return await create_queue(get_settings(**overrides).to_queue_config())


@app.command()
def version() -> None:
    """Show version."""
    from queuespine import __version__

    console.print(f"queuespine {__version__}")


@app.command()
def send(
    destination: str = typer.Argument(..., help="Queue URL, topic or queue name"),
    body: str = typer.Argument(..., help="Message body"),
    attr: list[str] = typer.Option([], "--attr", "-a", help="Attribute KEY=VALUE"),
    queue_type: str | None = typer.Option(None, "--type", "-t", help="sqs, kafka or rabbitmq"),
) -> None:
    """Send one message."""
    attributes = _parse_attributes(attr)

    async def main() -> str:
        queue = await _open(queue_type)
        try:
            return await queue.send(destination, body.encode("utf-8"), attributes)
        finally:
            await queue.close()

    message_id = _run(main())
    console.print(f"[green]sent[/green] {message_id}")


@app.command()
def receive(
    source: str = typer.Argument(..., help="Queue URL, topic or queue name"),
    max_messages: int = typer.Option(10, "--max", "-n", help="Maximum messages"),
    wait: float = typer.Option(5.0, "--wait", "-w", help="Wait time in seconds"),
    ack: bool = typer.Option(False, "--ack", help="Acknowledge printed messages"),
    queue_type: str | None = typer.Option(None, "--type", "-t", help="sqs, kafka or rabbitmq"),
) -> None:
    """Receive messages and print them."""

    async def main() -> list:
        queue = await _open(queue_type)
        try:
            messages = await queue.receive(source, max_messages, wait)
            if ack and messages:
                set_queue_url = getattr(queue, "set_queue_url", None)
                if set_queue_url is not None:
                    set_queue_url(source)
                for message in messages:
                    await queue.ack(message)
            return messages
        finally:
            await queue.close()

    messages = _run(main())
    if not messages:
        console.print("[dim]no messages[/dim]")
        return

    table = Table(title=f"{len(messages)} message(s) from {source}")
    table.add_column("ID")
    table.add_column("Attempt", justify="right")
    table.add_column("Attributes")
    table.add_column("Body")
    for m in messages:
        attrs = ", ".join(f"{k}={v}" for k, v in m.attributes.items())
        table.add_row(m.message_id, str(m.attempt), attrs, m.body.decode("utf-8", "replace"))
    console.print(table)


@app.command()
def info(
    name: str = typer.Argument(..., help="Queue URL, topic or queue name"),
    queue_type: str | None = typer.Option(None, "--type", "-t", help="sqs, kafka or rabbitmq"),
) -> None:
    """Show queue metadata."""

    async def main():
        queue = await _open(queue_type)
        try:
            return await queue.get_info(name)
        finally:
            await queue.close()

    result = _run(main())
    console.print(f"[bold]{result.name}[/bold]")
    console.print(f"approximate count: {result.approximate_count}")
    if result.consumer_count is not None:
        console.print(f"consumers: {result.consumer_count}")
    if result.in_flight_count is not None:
        console.print(f"in flight: {result.in_flight_count}")
    if result.delayed_count is not None:
        console.print(f"delayed: {result.delayed_count}")
    if result.created_at is not None:
        console.print(f"created: {result.created_at.isoformat()}")


if __name__ == "__main__":
    app()
