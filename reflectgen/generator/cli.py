"""Command-line interface for reflectgen."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from lark.exceptions import LarkError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from reflectgen.generator import archive, parse, synthesize, write
from reflectgen.generator.collector import collect
from reflectgen.generator.parser import ValidationError
from reflectgen.generator.synthesizer import common_files
from reflectgen.reflection import Dialect, Endpoint, ReflectionClient, Transport

if TYPE_CHECKING:
    from collections.abc import Iterable

    from reflectgen.generator.catalog import Catalog

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    logging.getLogger("reflectgen").setLevel(logging.DEBUG if verbose else logging.INFO)


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Synthesize .proto files from a gRPC server's reflection services."""
    _configure_logging(verbose)


@cli.command()
@click.option(
    "--endpoint",
    "-e",
    prompt="Enter the gRPC endpoint",
    default="localhost:9090",
    help="host:port of the gRPC server",
)
@click.option(
    "--transport",
    "-t",
    type=click.Choice([t.value for t in Transport]),
    prompt="Select connection type",
    default=Transport.TLS.value,
    help="Connection security",
)
@click.option(
    "--archive/--no-archive",
    "make_archive",
    prompt="Generate a .tar.gz archive of the .proto files?",
    default=True,
    help="Pack the output directory into <output>.tar.gz",
)
@click.option(
    "--output",
    "-o",
    "output_dir",
    default="generated_protos",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory",
)
@click.option(
    "--dialect",
    "-d",
    "dialects",
    multiple=True,
    type=click.Choice([d.value for d in Dialect]),
    default=[d.value for d in Dialect],
    help="Reflection dialect to query (repeatable, default: all)",
)
@click.option(
    "--ca-cert",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="PEM root certificates for TLS",
)
@click.option(
    "--catalog-json",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the collected catalog as JSON",
)
@click.option(
    "--validate",
    "validate_output",
    is_flag=True,
    default=False,
    help="Parse every generated file and fail if one is invalid",
)
def generate(
    endpoint: str,
    transport: str,
    make_archive: bool,
    output_dir: Path,
    dialects: tuple[str, ...],
    ca_cert: Path | None,
    catalog_json: Path | None,
    validate_output: bool,
) -> None:
    """Query a reflection endpoint and generate .proto files."""
    root_certificates = ca_cert.read_bytes() if ca_cert else None
    target = Endpoint(address=endpoint, transport=Transport(transport))

    logger.info("Querying %s (%s)", target.address, target.transport)
    with ReflectionClient.connect(target, root_certificates) as client:
        catalog = collect(client, [Dialect(d) for d in dialects])

    if catalog_json:
        catalog_json.write_text(catalog.to_json(indent=2), encoding="utf-8")

    written = write(synthesize(catalog), output_dir)
    print(f"Generated {len(written)} proto files in {output_dir}")

    if validate_output:
        invalid = _check_files(written)
        if invalid:
            _print_invalid(invalid)
            sys.exit(1)

    if make_archive:
        print(f"Generated archive {archive(output_dir)}")

    _print_summary(catalog)


@cli.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
def check(directory: Path) -> None:
    """Parse and validate every .proto file under a directory."""
    paths = sorted(directory.rglob("*.proto"))
    invalid = _check_files(paths)
    if invalid:
        _print_invalid(invalid)
        sys.exit(1)
    print(f"{len(paths)} proto files are valid")


@cli.command()
@click.option(
    "--output",
    "-o",
    "output_dir",
    default="generated_protos",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory",
)
def common(output_dir: Path) -> None:
    """Write only the well-known files bundled with every run."""
    written = write(common_files(), output_dir)
    print(f"Generated {len(written)} common proto files in {output_dir}")


def _check_files(paths: Iterable[Path]) -> list[tuple[Path, str]]:
    """Parse each file, returning (path, error) for the ones that fail."""
    invalid: list[tuple[Path, str]] = []
    for path in paths:
        try:
            parse(path.read_text(encoding="utf-8"))
        except (LarkError, ValidationError) as e:
            message = str(e).strip().splitlines()[0] if str(e).strip() else type(e).__name__
            invalid.append((path, message))
    return invalid


def _print_invalid(invalid: list[tuple[Path, str]]) -> None:
    console = Console()
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("File", style="white")
    table.add_column("Error", style="red")
    for path, message in invalid:
        table.add_row(str(path), message)
    console.print("[bold red]Invalid proto files[/bold red]")
    console.print(table)


def _print_summary(catalog: Catalog) -> None:
    """Print the reflection methods that produced no data."""
    console = Console()

    if not catalog.unavailable and not catalog.failures:
        console.print("[bold green]All reflection methods were available[/bold green]")
        return

    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("Method", style="white")
    table.add_column("Status", style="yellow")
    table.add_column("Detail", style="dim")

    for label in catalog.unavailable:
        table.add_row(label, "unimplemented", "")
    for failure in catalog.failures:
        table.add_row(failure.call, "failed", failure.detail)

    console.print("[bold cyan]Unavailable reflection methods[/bold cyan]")
    console.print(table)


def main() -> None:
    """Main entry point."""
    cli(auto_envvar_prefix="REFLECTGEN")


if __name__ == "__main__":
    main()
