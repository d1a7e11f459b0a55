"""Action queue CLI - inspect and steer queued action programs."""

import logging

import typer

from actionqueue_core.cli.queue import queue_app

app = typer.Typer(
    name="actionqueue",
    help="Inspect and steer queued action programs",
    no_args_is_help=True,
)

# Add command groups
app.add_typer(queue_app, name="queue")


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
