"""
Run importer: discovers sequencing run folders and loads their runs, samples and fastq files
"""

import datetime
import io
import re
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import models
from logging_setup import logger
from search.store import StoreError

SAMPLESHEET_NAME = "SampleSheet.csv"

# 1 cell carries about 6.5 pg of DNA
CELLS_PER_NG = 153.846

# Month folder names as they exist in the cell sheet tree
CELLSHEET_MONTHS = [
    "01_Januar",
    "02_Feburar",
    "03_März",
    "04_April",
    "05_Mai",
    "06_Juni",
    "07_Juli",
    "08_August",
    "09_September",
    "10_Oktober",
    "11_November",
    "12_Dezember",
]

DNA_NR_PATTERN = re.compile(r"(?:D-)?(?P<dna_nr>\d\d-\d{3,})")
PRIMER_PATTERN = re.compile(r"_(?P<primer>IGH.*?|IGK.*?|FR.*?|DJ|TRD.*?|TRB.*?|TRG.*?)(?:_|$)", re.IGNORECASE)
FASTQ_NAME_PATTERN = re.compile(r"(?P<name>.*?)_S\d+_.*\.fastq\.gz$")


class RunImportError(Exception):
    """Raised when a run folder cannot be read"""

    pass


@dataclass
class SampleRecord:
    name: str
    dna_nr: str = ""
    project: str = ""
    lims_id: Optional[int] = None
    primer_set: Optional[str] = None
    cells: Optional[int] = None
    files: List[str] = field(default_factory=list)

    def same_sample(self, other: "SampleRecord") -> bool:
        return (self.name, self.dna_nr, self.primer_set, self.project) == (
            other.name,
            other.dna_nr,
            other.primer_set,
            other.project,
        )


@dataclass
class RunRecord:
    name: str
    date: datetime.date
    path: str
    assay: str = ""
    chemistry: str = ""
    description: str = ""
    investigator: str = ""
    samples: List[SampleRecord] = field(default_factory=list)

    def to_model(self) -> models.Run:
        return models.Run(
            name=self.name,
            date=self.date,
            path=self.path,
            assay=self.assay,
            chemistry=self.chemistry,
            description=self.description or None,
            investigator=self.investigator,
        )


# === Name parsing ===
def parse_run_date(run_name: str) -> datetime.date:
    """Run names start with the run date as YYMMDD"""
    try:
        return datetime.datetime.strptime(run_name[:6], "%y%m%d").date()
    except ValueError as e:
        raise RunImportError(f"{run_name}: no run date in name") from e


def normalize_dna_nr(dna_nr: str) -> str:
    """'D-21-123' and '21-00123' both become '21-00123'"""
    if dna_nr.startswith("D-"):
        dna_nr = dna_nr[2:]
    year, number = dna_nr.split("-")
    return f"{int(year):02d}-{int(number):05d}"


def parse_sample_name(sample: SampleRecord):
    """Fills in DNA number and primer set when the sample name carries them"""
    name = sample.name.replace(" ", "_")
    match = DNA_NR_PATTERN.search(name)
    if match:
        sample.dna_nr = normalize_dna_nr(match.group("dna_nr"))
    match = PRIMER_PATTERN.search(name)
    if match:
        sample.primer_set = match.group("primer")


def is_fastq(path: str) -> bool:
    return (
        path.endswith(".fastq.gz")
        and "Data" not in path
        and "Undetermined" not in path
        and "Archiv_" not in path
    )


# === Fastq assignment ===
def match_fastq(sample: SampleRecord, fastq: str) -> bool:
    if sample.dna_nr:
        if sample.primer_set:
            return sample.dna_nr in fastq and sample.primer_set in fastq
        return sample.dna_nr in fastq
    return sample.name in fastq


def sample_from_fastq(samples: List[SampleRecord], fastq: str):
    """Recovers a sample from a fastq path nobody claimed, merging with an equal one"""
    path = Path(fastq)
    project = path.parent.name if path.parent.name.startswith("data_") else ""
    match = FASTQ_NAME_PATTERN.match(path.name)
    sample = SampleRecord(name=match.group("name") if match else "Unknown", project=project)
    if match:
        parse_sample_name(sample)

    for known in samples:
        if known.same_sample(sample):
            known.files.append(fastq)
            return
    sample.files.append(fastq)
    samples.append(sample)


def assign_fastqs(samples: List[SampleRecord], fastqs: Iterable[str]):
    """
    Distributes fastq paths over the samples of a run

    Longer sample names claim their files first, so a name that is a prefix of another
    does not steal its files. Leftover files become samples of their own.
    """
    remaining = list(fastqs)
    samples.sort(key=lambda s: len(s.name), reverse=True)
    for sample in samples:
        claimed = [f for f in remaining if match_fastq(sample, f)]
        sample.files.extend(claimed)
        remaining = [f for f in remaining if f not in claimed]

    if remaining:
        logger.debug(f"Recovering samples from {len(remaining)} unmatched fastqs")
    for fastq in remaining:
        sample_from_fastq(samples, fastq)


# === Sample sheets ===
def parse_data_row(run_name: str, parts: List[str]) -> SampleRecord:
    parts = parts[:10]
    # column layout differs between sample sheet versions
    project_column = {10: 8, 9: 8, 7: 5, 6: 4}.get(len(parts))
    if project_column is None:
        raise RunImportError(f"{run_name}: expected 10, 9, 7 or 6 columns in [Data], got {len(parts)}")

    sample = SampleRecord(name=parts[0], project=parts[project_column])
    if len(parts) == 10:
        try:
            lims_id = int(parts[9])
        except ValueError:
            lims_id = 0
        sample.lims_id = lims_id if lims_id > 0 else None
    parse_sample_name(sample)
    return sample


def parse_samplesheet(run: RunRecord, lines: Iterable[str], fastqs: List[str]):
    """
    Reads run metadata from the header and samples from the [Data] section
    of an Illumina SampleSheet.csv
    """
    data_mode = False
    for line in lines:
        parts = line.rstrip("\r\n").split(",")
        if not data_mode:
            if len(parts) >= 2:
                if parts[0] == "Investigator Name":
                    run.investigator = parts[1]
                elif parts[0] == "Assay":
                    run.assay = parts[1]
                elif parts[0] == "Description":
                    run.description = parts[1]
                elif parts[0] == "Chemistry":
                    run.chemistry = parts[1]
            if parts[0] == "[Data]":
                data_mode = True
            continue

        if parts[0].lower() == "sample_id" or len(parts) < 2:
            continue
        sample = parse_data_row(run.name, parts)
        if sample.name:
            run.samples.append(sample)

    assign_fastqs(run.samples, fastqs)
    if not run.samples:
        logger.warning(f"{run.name}: sample sheet resulted in 0 samples")


# === Cell sheets ===
def find_cellsheet(run: RunRecord, celldir: Path) -> Optional[Path]:
    """
    Looks for the spikeINBC sheet of a run under <celldir>/<year>/<month>/<run folder>/Start_*/

    The run folder starts with the full run date and the instrument id. When several
    sheets exist the one with the latest date prefix wins.
    """
    month_dir = celldir / str(run.date.year) / CELLSHEET_MONTHS[run.date.month - 1]
    if not month_dir.is_dir():
        return None

    run_prefix = "20" + "_".join(run.name.split("_")[:2]) + "_"
    latest, latest_date = None, -1
    for candidate in sorted(month_dir.glob(f"{run_prefix}*/Start_*/*spikeINBC.*")):
        if candidate.suffix not in (".txt", ".csv"):
            continue
        parts = candidate.name.split("_")
        if len(parts) == 1:
            sheet_date = 0
        elif len(parts) == 2 and parts[0].isdigit():
            sheet_date = int(parts[0])
        else:
            continue
        if sheet_date >= latest_date:
            latest, latest_date = candidate, sheet_date
    return latest


def parse_cellsheet(run: RunRecord, lines: Iterable[str]) -> int:
    """
    Sets cell counts from a cell sheet (sample name, ng of DNA, ...)

    Returns:
        Number of samples that were matched by name
    """
    matched = 0
    for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            continue
        parts = line.split(",")
        if len(parts) != 4:
            raise RunImportError(f"{run.name}: malformed cell sheet line: {line}")
        if parts[0] == "sample_ID":
            continue

        candidates = [s for s in run.samples if s.name == parts[0]]
        if len(candidates) != 1:
            logger.debug(f"{run.name}: cell sheet entry {parts[0]} matches {len(candidates)} samples")
            continue
        try:
            candidates[0].cells = round(float(parts[1]) * CELLS_PER_NG)
        except ValueError:
            candidates[0].cells = None
        matched += 1
    return matched


# === Run folders ===
def read_run_dir(path: Path) -> RunRecord:
    run = RunRecord(name=path.name, date=parse_run_date(path.name), path=str(path))
    fastqs = sorted(
        p.relative_to(path).as_posix()
        for p in path.rglob("*.fastq.gz")
        if p.parent != path and is_fastq(p.relative_to(path).as_posix())
    )
    if not fastqs:
        logger.error(f"{run.name}: no fastqs found")

    samplesheet = path / SAMPLESHEET_NAME
    if samplesheet.is_file():
        with open(samplesheet, encoding="utf-8", errors="replace") as f:
            parse_samplesheet(run, f, fastqs)
    else:
        logger.warning(f"{run.name}: no {SAMPLESHEET_NAME} found, skipping")
    return run


def read_run_zip(path: Path) -> RunRecord:
    run = RunRecord(name=path.stem, date=parse_run_date(path.stem), path=str(path))
    with zipfile.ZipFile(path) as archive:
        fastqs = sorted(name for name in archive.namelist() if is_fastq(name))
        try:
            with archive.open(f"{run.name}/{SAMPLESHEET_NAME}") as raw:
                parse_samplesheet(run, io.TextIOWrapper(raw, encoding="utf-8", errors="replace"), fastqs)
        except KeyError:
            logger.warning(f"{run.name}: no {SAMPLESHEET_NAME} found, skipping")
    return run


def read_run(path: Path, celldir: Optional[Path] = None) -> RunRecord:
    """
    Reads a run folder (or a zip of one) and, if a cell sheet can be found, its cell counts

    Raises:
        RunImportError if the folder is not a readable run
    """
    try:
        run = read_run_dir(path) if path.is_dir() else read_run_zip(path)
    except (OSError, zipfile.BadZipFile) as e:
        raise RunImportError(f"{path}: {e}") from e

    if celldir is not None:
        cellsheet = find_cellsheet(run, celldir)
        if cellsheet is None:
            logger.debug(f"{run.name}: no cell sheet found")
        else:
            try:
                with open(cellsheet, encoding="utf-8", errors="replace") as f:
                    matched = parse_cellsheet(run, f)
                logger.debug(f"{run.name}: cell sheet matched {matched} samples")
            except (OSError, RunImportError) as e:
                logger.warning(f"{run.name}: found a cell sheet but could not parse it: {e}")
    return run


def discover_runs(rundir: Path) -> List[Path]:
    """Run folders and zips live three levels down: <rundir>/<year>/<month>/<run>"""
    return sorted(p for p in rundir.glob("*/*/*") if p.is_dir() or p.suffix.lower() == ".zip")


def read_runs(rundir: Path, celldir: Optional[Path] = None) -> List[RunRecord]:
    runs = []
    for path in discover_runs(rundir):
        try:
            runs.append(read_run(path, celldir))
        except RunImportError as e:
            logger.warning(f"Skipping {path}: {e}")
    return runs


# === Database ===
def flush(db: Session):
    """Deletes every fastq, sample and run"""
    try:
        db.execute(delete(models.Fastq))
        db.execute(delete(models.Sample))
        db.execute(delete(models.Run))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not flush the database: {e}")
        raise StoreError(f"Could not flush the database: {str(e)}") from e


def store_runs(db: Session, runs: List[RunRecord]) -> int:
    """Inserts runs with their samples and fastqs in one transaction"""
    try:
        for run in runs:
            logger.debug(f"Add run {run.name}")
            db.add(run.to_model())
            db.flush()
            for record in run.samples:
                sample = models.Sample(
                    run=run.name,
                    name=record.name,
                    dna_nr=record.dna_nr,
                    project=record.project,
                    lims_id=record.lims_id,
                    primer_set=record.primer_set,
                    cells=record.cells,
                )
                db.add(sample)
                db.flush()
                db.add_all(models.Fastq(filename=f, sample_id=sample.id) for f in dict.fromkeys(record.files))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not store runs: {e}")
        raise StoreError(f"Could not store runs: {str(e)}") from e
    return len(runs)


def update(db: Session, rundir: Path, celldir: Optional[Path] = None) -> int:
    """
    Replaces the database content with the runs found under rundir

    Returns:
        Number of runs stored
    """
    runs = read_runs(rundir, celldir)
    logger.info(f"Populating database with {len(runs)} runs")
    flush(db)
    return store_runs(db, runs)
