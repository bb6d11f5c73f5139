from __future__ import annotations

import json
import sys
from typing import Optional

import typer
import uvicorn

from shared.db import get_connection
from shared.logging import setup_logging

from .app import create_app
from .config import get_settings
from .routes.deps import get_engine
from .schema import apply_schema

cli = typer.Typer(help="Contact Identity Service entrypoint")


@cli.command()
def serve(host: str = "0.0.0.0", port: int = 3000) -> None:
    """Start the Identity Service using uvicorn."""

    app = create_app()
    uvicorn.run(app, host=host, port=port, log_level="info", lifespan="on")


@cli.command("init-db")
def init_db() -> None:
    """Create the contact table and indexes."""

    settings = get_settings()
    setup_logging(settings.log_level, stream=sys.stderr)
    with get_connection(settings.database_url, connect_timeout=settings.connect_timeout) as conn:
        apply_schema(conn)
    typer.echo("contact schema applied")


@cli.command()
def identify(
    email: Optional[str] = typer.Option(None, help="Email address to resolve"),
    phone: Optional[str] = typer.Option(None, "--phone", help="Phone number to resolve"),
) -> None:
    """Resolve one identifier pair and print the consolidated contact."""

    setup_logging(get_settings().log_level, stream=sys.stderr)
    result = get_engine().identify(email, phone)
    typer.echo(json.dumps({"contact": result.contact.as_dict()}, indent=2))


@cli.command()
def audit() -> None:
    """Report contact graph invariant violations; exits 1 when any are found."""

    setup_logging(get_settings().log_level, stream=sys.stderr)
    violations = get_engine().audit()
    typer.echo(json.dumps([item.as_dict() for item in violations], indent=2))
    if violations:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    cli()
