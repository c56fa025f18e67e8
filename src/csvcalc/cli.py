"""Command-line interface for csvcalc."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import click

from csvcalc import __version__
from csvcalc.errors import CsvCalcError


@click.group()
@click.version_option(version=__version__, prog_name="csvcalc")
def main() -> None:
    """csvcalc -- resolve cell formulas in CSV tables.

    Cells hold integers or single-step formulas such as =A1+B2.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _common_options(fn: Any) -> Any:
    fn = click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")(fn)
    fn = click.option("--log-dir", "log_dir", default=None, type=click.Path(file_okay=False), help="Write NDJSON run events to this directory.")(fn)
    fn = click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Path to a csvcalc.yaml config file.")(fn)
    fn = click.option("--delimiter", "-d", default=None, help="Field delimiter, or 'auto' to detect it.")(fn)
    fn = click.argument("path", type=click.Path(exists=True, dir_okay=False))(fn)
    return fn


def _prepare(
    config_path: str | None,
    delimiter: str | None,
    log_dir: str | None,
    verbose: bool,
) -> dict[str, Any]:
    """Load config, apply CLI overrides and configure both logging layers."""
    from csvcalc.config import load_config
    from csvcalc.logging.events import set_log_dir

    try:
        cfg = load_config(Path(config_path) if config_path else None)
    except CsvCalcError as e:
        raise click.ClickException(str(e))
    if delimiter is not None:
        if delimiter != "auto" and len(delimiter) != 1:
            raise click.ClickException(f"--delimiter must be one character or 'auto', got {delimiter!r}")
        cfg["delimiter"] = delimiter
    if log_dir is not None:
        cfg["log_dir"] = log_dir
    if verbose:
        cfg["log_level"] = "DEBUG"

    logging.basicConfig(
        level=cfg["log_level"],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    set_log_dir(Path(cfg["log_dir"]) if cfg["log_dir"] else None, fsync=bool(cfg["logging_fsync"]))
    return cfg


def _run(path: str, cfg: dict[str, Any]):
    from csvcalc.runner import run_file

    try:
        return run_file(Path(path), cfg)
    except CsvCalcError as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@_common_options
@click.option("--output", "-o", "output", default=None, type=click.Path(dir_okay=False), help="Write the resolved table to a file instead of stdout.")
def eval_cmd(
    path: str,
    delimiter: str | None,
    config_path: str | None,
    log_dir: str | None,
    verbose: bool,
    output: str | None,
) -> None:
    """Resolve every formula in PATH and print the table."""
    cfg = _prepare(config_path, delimiter, log_dir, verbose)
    result = _run(path, cfg)
    if output:
        from csvcalc.sources import write_text

        write_text(Path(output), result.text)
        click.echo(f"Wrote {output}")
    else:
        click.echo(result.text)


# ---------------------------------------------------------------------------
# Check
# ---------------------------------------------------------------------------


@main.command()
@_common_options
def check(
    path: str,
    delimiter: str | None,
    config_path: str | None,
    log_dir: str | None,
    verbose: bool,
) -> None:
    """Validate and evaluate PATH, printing a summary instead of the table."""
    cfg = _prepare(config_path, delimiter, log_dir, verbose)
    result = _run(path, cfg)
    table = result.table
    click.echo(
        f"OK: {table.row_count} rows x {table.column_count} columns, "
        f"{len(table.formulas)} formulas"
    )
