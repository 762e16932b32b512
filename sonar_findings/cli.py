"""CLI entry point — command definitions using Click.

Commands:
    init      Generate a template config file
    export    Snapshot vulnerability issues and security hotspots to JSON
"""

import functools
import sys

import click

from sonar_findings import __version__


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(ctx: click.Context):
    """Load config, exiting on error before any network activity."""
    from sonar_findings.config import ConfigError, load

    try:
        return load(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


def _verbose(ctx: click.Context, message: str) -> None:
    if ctx.obj["verbose"]:
        click.echo(f"[verbose] {message}", err=True)


def _handle_errors(func):
    """Decorator that catches export failures and exits cleanly."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from sonar_findings.client import (
            AuthenticationError,
            DecodeError,
            NetworkError,
            NotFoundError,
            PagingSchemaError,
            SonarClientError,
        )
        from sonar_findings.version import VersionLookupError

        try:
            return func(*args, **kwargs)
        except VersionLookupError as exc:
            click.echo(f"Version error: {exc}", err=True)
            sys.exit(1)
        except AuthenticationError as exc:
            click.echo(f"Authentication error: {exc}", err=True)
            sys.exit(1)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
            sys.exit(1)
        except NetworkError as exc:
            click.echo(f"Network error: {exc}", err=True)
            sys.exit(1)
        except PagingSchemaError as exc:
            click.echo(f"Unexpected response: {exc}", err=True)
            sys.exit(1)
        except DecodeError as exc:
            click.echo(f"Invalid JSON: {exc}", err=True)
            sys.exit(1)
        except SonarClientError as exc:
            click.echo(f"SonarQube error: {exc}", err=True)
            sys.exit(1)
        except OSError as exc:
            click.echo(f"Write error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=None,
              help="Optional YAML configuration file (environment variables take precedence).")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="sonar-findings")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Export SonarQube vulnerability findings as a single JSON snapshot."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="sonar-findings.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template sonar-findings.yaml file."""
    from sonar_findings.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your server URL, token and project settings.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# export
# ---------------------------------------------------------------------------

@cli.command("export")
@click.option("--output-dir", default=None,
              help="Directory for the result file (overrides config).")
@click.option("--pom", "pom_path", default=None,
              help="Maven descriptor holding the project version (overrides config).")
@click.option("--page-size", type=click.IntRange(min=1), default=None,
              help="Results requested per page.  [default: 500]")
@click.pass_context
@_handle_errors
def export_command(ctx: click.Context, output_dir: str | None, pom_path: str | None,
                   page_size: int | None) -> None:
    """Fetch all vulnerability issues and hotspots and write them to one file."""
    from sonar_findings.client import PAGE_SIZE, SonarClient
    from sonar_findings.reports.findings import build_document, collect_findings
    from sonar_findings.version import result_filename, write_document

    config = _load_config(ctx)
    client = SonarClient(url=config.url, token=config.token, page_size=page_size or PAGE_SIZE)

    _verbose(ctx, f"Connecting to {config.url}")
    _verbose(ctx, f"Fetching findings for {config.project_key} in {config.organization}"
                  + (f" on branch '{config.branch}'" if config.branch else ""))

    def progress(label: str, on_page: int, so_far: int) -> None:
        _verbose(ctx, f"{label}: +{on_page} (total {so_far})")

    issues, hotspots = collect_findings(client, config, on_progress=progress)
    document = build_document(issues, hotspots)

    filename = result_filename(client, pom_path or config.pom_path)
    path = write_document(document, output_dir or config.output_dir, filename)

    click.echo(
        f"Wrote {len(issues)} issues and {len(hotspots)} hotspots to '{path}'", err=True
    )
