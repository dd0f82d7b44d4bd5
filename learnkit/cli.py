from __future__ import annotations

import json
from typing import Any, Callable

import click

from . import cards, db, weekly
from .errors import LearnKitError


def _run(fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except LearnKitError as e:
        raise click.ClickException(e.message) from e


@click.group()
def cli() -> None:
    """LearnKit operator commands."""


@cli.command("init-db")
def init_db() -> None:
    """Create every table in the configured database."""
    db.init_db()
    click.echo("Database initialized.")


@cli.command("ensure-baselines")
@click.argument("user_id", type=int)
def ensure_baselines(user_id: int) -> None:
    """Create this week's baselines for USER_ID if they are missing."""
    created = _run(weekly.ensure_weekly_baselines, user_id)
    if created:
        click.echo(f"Weekly baselines created for user {user_id}.")
    else:
        click.echo(f"Weekly baselines already exist for user {user_id} (skipped).")


@cli.command("weekly-stats")
@click.argument("user_id", type=int)
def weekly_stats(user_id: int) -> None:
    """Print this week's statistics for USER_ID as JSON."""
    click.echo(json.dumps(_run(weekly.get_weekly_stats, user_id), indent=2, ensure_ascii=False))


@cli.command("weekly-summary")
@click.argument("user_id", type=int)
def weekly_summary(user_id: int) -> None:
    """Print (and record) this week's study summary for USER_ID as JSON."""
    click.echo(json.dumps(_run(weekly.get_weekly_summary, user_id), indent=2, ensure_ascii=False))


@cli.command("reset-priorities")
@click.argument("word_book_id", type=int)
def reset_priorities(word_book_id: int) -> None:
    """Re-baseline the review queue of WORD_BOOK_ID."""
    count = _run(cards.reset_word_book_priorities, word_book_id)
    click.echo(f"Reset {count} card(s) in word-book {word_book_id}.")


@cli.command("serve")
@click.option("--host", default="127.0.0.1", help="Host IP to bind to")
@click.option("--port", type=int, default=5000, help="Port to bind to")
@click.option("--debug", is_flag=True, help="Enable debug mode")
def serve(host: str, port: int, debug: bool) -> None:
    """Run the HTTP API with the Flask development server."""
    import app as webapp

    if not db.is_db_initialized():
        db.init_db()
    webapp.app.run(debug=debug or webapp.DEBUG, host=host, port=port)


def main() -> None:
    cli()
