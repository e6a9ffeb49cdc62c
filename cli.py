# cli.py
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional
import typer
from rich.console import Console
from rich.table import Table
import crud
import enums
import importer
import models
from database import SessionLocal
from logging_setup import logger
from search import SearchEngine, SqlSampleStore, StoreError

app = typer.Typer(help="Vault: sequencing runs, samples and fastq files")

DEFAULT_RUNDIR = Path("/mnt/ngs/01-Rohdaten")


def read_needles(needle: str) -> List[str]:
    """
    Filename patterns from the argument, or one per line from stdin for '-'

    A pattern without '%' matches anywhere in the filename.
    """
    lines = [line.strip() for line in sys.stdin] if needle == "-" else [needle]
    return [line if "%" in line else f"%{line}%" for line in lines if line]


def samplesheet_format(path: Path) -> enums.OutputFormat:
    return enums.OutputFormat.csv if path.suffix.lower() == ".csv" else enums.OutputFormat.tsv


def display_samples_table(rows: List[models.SampleRow]):
    """Display samples in a rich table format."""
    console = Console()
    table = Table(title=f"Samples ({len(rows)})")
    for header, style in [
        ("ID", "dim"),
        ("Run", "cyan"),
        ("Name", "green"),
        ("DNA nr", None),
        ("Project", None),
        ("Primer set", None),
        ("Cells", None),
        ("LIMS id", None),
    ]:
        table.add_column(header, style=style, no_wrap=header in ("ID", "Run"))
    for row in rows:
        table.add_row(
            str(row.id),
            row.run,
            row.name,
            row.dna_nr,
            row.project,
            row.primer_set or "",
            "" if row.cells is None else str(row.cells),
            "" if row.lims_id is None else str(row.lims_id),
        )
    console.print(table)


@app.command("query")
def query(
    needle: str = typer.Argument(..., help="Fastq filename pattern, or '-' to read patterns from stdin"),
    filters: Optional[List[str]] = typer.Option(None, "--filter", help="Filter clause, e.g. cells>=15000 (repeatable)"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Rows per pattern: 50, 100, 200, 500 or 1000"),
    samplesheet: Optional[Path] = typer.Option(
        None, "--samplesheet", "-s", help="Write the matching samples to a sample sheet (.csv or .tsv)"
    ),
    output_format: str = typer.Option("table", "--output-format", "-o", help="Output format: table or json"),
):
    """
    Search samples by fastq filename, narrowed down by filter clauses.
    """
    clauses = " ".join(filters or [])
    needles = read_needles(needle)
    logger.info(f"Performing {len(needles)} queries...")

    found: Dict[int, models.SampleRow] = {}
    warnings: List[str] = []
    with SessionLocal() as db:
        engine = SearchEngine(SqlSampleStore(db))
        try:
            for pattern in needles:
                result = engine.search(f"filename={pattern} {clauses}", limit)
                for row in result.rows:
                    found.setdefault(row.id, row)
                warnings.extend(w for w in result.warnings if w not in warnings)
                if result.limit_reached:
                    typer.echo(f"Limit of {result.limit} reached for {pattern}", err=True)

            for warning in warnings:
                typer.echo(f"Warning: {warning}", err=True)

            rows = sorted(found.values(), key=lambda r: (r.run, r.name, r.id))
            if samplesheet is not None:
                samples = crud.checkout_samples(db, [row.id for row in rows])
                samplesheet.write_text(crud.write_samplesheet(samples, samplesheet_format(samplesheet)))
                logger.info(f"Wrote {len(samples)} samples to {samplesheet}")
        except StoreError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    if output_format == "json":
        print(json.dumps([row.model_dump() for row in rows], indent=2))
    else:
        display_samples_table(rows)


@app.command("update")
def update(
    rundir: Path = typer.Option(
        DEFAULT_RUNDIR, "--rundir", envvar="VAULT_RUNDIR", help="Root folder of the sequencing runs (<year>/<month>/<run>)"
    ),
    celldir: Optional[Path] = typer.Option(
        None, "--celldir", envvar="VAULT_CELLDIR", help="Root folder of the spikeINBC cell sheets"
    ),
):
    """
    Replace the database content with the runs found under the run folder.
    """
    if not rundir.is_dir():
        typer.echo(f"Error: Directory '{rundir}' does not exist.", err=True)
        raise typer.Exit(1)

    with SessionLocal() as db:
        try:
            count = importer.update(db, rundir, celldir)
        except StoreError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
    typer.echo(f"Imported {count} runs from {rundir}")


if __name__ == "__main__":
    app()
