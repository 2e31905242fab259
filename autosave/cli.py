"""
Command line entrypoint for Firefly Autosave.

Configuration comes from a .env file (default: ./.env, or --env) and
the options below; options win over the file.

Exit codes:
    0  run finished
    1  ledger read or write failed
    2  missing or invalid configuration
"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from autosave.audit import AuditLogger, configure_logging
from autosave.config import ConfigError, load_settings
from autosave.config.settings import DEFAULT_ENV_FILE
from autosave.orchestrator import create_app_components
from autosave.services.ledger import FetchError, LinkWriteError, WriteError


EXIT_OK = 0
EXIT_LEDGER_ERROR = 1
EXIT_CONFIG_ERROR = 2

app = typer.Typer(
    name="firefly-autosave",
    help="Round up Firefly III withdrawals and move the difference into savings.",
    add_completion=False,
)


@app.command()
def run(
    env: Annotated[
        Optional[Path], typer.Option("--env", help="Path to the .env file")
    ] = None,
    firefly_url: Annotated[
        Optional[str], typer.Option(help="Firefly III base URL")
    ] = None,
    firefly_token: Annotated[
        Optional[str], typer.Option(help="Firefly III personal access token")
    ] = None,
    account: Annotated[
        Optional[int], typer.Option(help="Source account id")
    ] = None,
    destination: Annotated[
        Optional[int], typer.Option(help="Savings account id")
    ] = None,
    amount: Annotated[
        Optional[str], typer.Option(help="Round up to a multiple of this amount")
    ] = None,
    days: Annotated[
        Optional[int], typer.Option(help="Lookback window in days (0 = since 2000-01-01)")
    ] = None,
    min_balance: Annotated[
        Optional[str], typer.Option(help="Skip if the balance after is not above this")
    ] = None,
    dry_run: Annotated[
        Optional[bool], typer.Option("--dry-run/--no-dry-run", help="Only log candidates")
    ] = None,
    exclude_keywords: Annotated[
        Optional[str], typer.Option(help="Comma-separated tags to exclude")
    ] = None,
    only_type: Annotated[
        Optional[str], typer.Option(help="Transaction type to scan")
    ] = None,
    autosave_tag: Annotated[
        Optional[str], typer.Option(help="Tag put on created transfers")
    ] = None,
    link_type_id: Annotated[
        Optional[int], typer.Option(help="Link type id")
    ] = None,
    link_type_name: Annotated[
        Optional[str], typer.Option(help="Link type name (overrides --link-type-id)")
    ] = None,
    verbose: Annotated[
        Optional[bool], typer.Option("--verbose/--quiet", help="Log silent skips too")
    ] = None,
    log_format: Annotated[
        Optional[str], typer.Option(help="console or json")
    ] = None,
    stop_on_error: Annotated[
        Optional[bool],
        typer.Option(
            "--stop-on-error/--continue-on-error",
            help="Abort the run on the first failed write",
        ),
    ] = None,
) -> None:
    """Create round-up autosave transfers for one account."""
    try:
        settings = load_settings(
            env_file=env if env is not None else DEFAULT_ENV_FILE,
            require_env_file=env is not None,
            firefly={
                "url": firefly_url,
                "token": firefly_token,
            },
            autosave={
                "source_account_id": account,
                "destination_account_id": destination,
                "round_to": amount,
                "days": days,
                "min_balance": min_balance,
                "dry_run": dry_run,
                "exclude_keywords": exclude_keywords,
                "only_type": only_type,
                "autosave_tag": autosave_tag,
                "link_type_id": link_type_id,
                "link_type_name": link_type_name,
                "verbose": verbose,
                "log_format": log_format,
                "stop_on_write_error": stop_on_error,
            },
        )
    except ConfigError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR)

    configure_logging(
        verbose=settings.autosave.verbose,
        log_format=settings.autosave.log_format,
    )

    audit_logger = AuditLogger()
    flow, client = create_app_components(settings, audit_logger=audit_logger)

    with client:
        try:
            report = flow.run()
        except ConfigError as e:
            typer.echo(str(e), err=True)
            raise typer.Exit(EXIT_CONFIG_ERROR)
        except LinkWriteError as e:
            typer.echo(f"Manual reconciliation needed: {e}", err=True)
            raise typer.Exit(EXIT_LEDGER_ERROR)
        except (FetchError, WriteError) as e:
            typer.echo(f"Auto-save aborted: {e}", err=True)
            raise typer.Exit(EXIT_LEDGER_ERROR)

    summary = report.summary()
    typer.echo(
        "Summary: "
        + ", ".join(f"{name}={count}" for name, count in summary.items())
    )
    if report.has_failures:
        raise typer.Exit(EXIT_LEDGER_ERROR)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
