"""
Game Hub CLI.

Command-line interface for common operations: issuing subscriber tokens,
signing webhook payloads for manual testing, inspecting games and running
the server.
"""

import sys
from pathlib import Path
from typing import Optional

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="gamehub",
    help="Game Hub CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Token Commands
# =============================================================================


@app.command()
def issue_token(
    principal: str = typer.Argument(..., help="Principal id to encode in the 'sub' claim"),
    ttl: Optional[int] = typer.Option(None, "--ttl", help="Lifetime in seconds (default from settings)"),
    no_expiry: bool = typer.Option(False, "--no-expiry", help="Issue a token without 'exp'"),
):
    """Issue a signed token for API calls and subscriptions."""
    from shared.security.auth import TokenAuthenticator, sign_jwt
    from shared.config.settings import get_settings

    if no_expiry:
        token = TokenAuthenticator(get_settings().jwt_secret).sign(principal)
    else:
        token = sign_jwt(principal, ttl_seconds=ttl)

    console.print(token, soft_wrap=True)


@app.command()
def verify_token(token: str = typer.Argument(..., help="Token or 'Bearer <token>'")):
    """Verify a token and print its principal."""
    from shared.security.auth import verify_jwt
    from shared.utils.exceptions import UnauthorizedError

    try:
        principal = verify_jwt(token)
    except UnauthorizedError as e:
        console.print(f"[red]✗ {e.detail}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Valid token for principal {principal.id}[/green]")


# =============================================================================
# Webhook Commands
# =============================================================================


@app.command()
def sign_payload(
    payload_file: Path = typer.Argument(..., exists=True, readable=True, help="JSON body to sign"),
    algorithm: str = typer.Option("sha256", help="sha256 or sha1 (legacy header)"),
    url: str = typer.Option("http://localhost:8080/webhook", help="Webhook URL for the curl hint"),
):
    """Print the signature header GitHub would send for a payload."""
    from shared.security.webhook_signing import create_webhook_verifier

    if algorithm not in ("sha256", "sha1"):
        console.print("[red]Algorithm must be sha256 or sha1[/red]")
        raise typer.Exit(1)

    verifier = create_webhook_verifier()
    body = payload_file.read_bytes()
    signature = verifier.sign(body, algorithm)
    header = (
        verifier.HEADER_SIGNATURE_256 if algorithm == "sha256" else verifier.HEADER_SIGNATURE_SHA1
    )

    console.print(f"[cyan]{header}:[/cyan] {signature}")
    console.print(
        f"\ncurl -X POST {url} -H 'Content-Type: application/json' "
        f"-H '{header}: {signature}' --data-binary @{payload_file}",
        soft_wrap=True,
    )


# =============================================================================
# Database Commands
# =============================================================================


@app.command()
def db_init():
    """Create database tables."""
    from shared.infrastructure.db import engine
    from rest_api.models import Base

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Tables created/verified[/green]")


@app.command()
def games(
    limit: int = typer.Option(50, help="Maximum number of games to show"),
):
    """List games in the catalogue."""
    from shared.infrastructure.db import get_db_context
    from rest_api.services.domain.game_service import GameStore

    with get_db_context() as db:
        store = GameStore(db)
        rows = store.list_games(limit=limit)
        total = store.count_games()

        table = Table(title=f"Games ({total})")
        table.add_column("ID", style="cyan")
        table.add_column("Issue", style="dim")
        table.add_column("Name", style="green")
        table.add_column("Kind")
        table.add_column("Players")
        for game in rows:
            table.add_row(
                str(game.id),
                str(game.issue_id),
                game.name,
                game.kind or "-",
                str(game.max_player or "-"),
            )

    console.print(table)


# =============================================================================
# Server Commands
# =============================================================================


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """Run the API and subscription gateway."""
    import uvicorn
    from shared.config.settings import get_settings

    port = port or get_settings().port
    console.print(f"[blue]Starting Game Hub on {host}:{port}[/blue]")
    uvicorn.run("rest_api.main:app", host=host, port=port, reload=reload)


@app.command()
def version():
    """Show version information."""
    from rest_api.main import VERSION

    table = Table(title="Game Hub Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("API", VERSION)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
