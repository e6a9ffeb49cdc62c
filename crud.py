import csv
import io
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
import models
import enums


# === Run-related operations ===
def get_runs(db: Session, skip: int = 0, limit: int = 5) -> List[models.Run]:
    return db.query(models.Run).order_by(models.Run.date.desc(), models.Run.name).offset(skip).limit(limit).all()


def get_run(db: Session, name: str) -> Optional[models.Run]:
    return db.query(models.Run).filter(models.Run.name == name).first()


# === Sample-related operations ===
def parse_sample_ids(values: Iterable[Any]) -> List[int]:
    """
    Normalize a sample selection to sorted, unique integer ids.

    Selections come from form checkboxes and the selection cookie, so anything that is
    not an integer is dropped.
    """
    ids = set()
    for value in values:
        try:
            ids.add(int(str(value).strip()))
        except ValueError:
            continue
    return sorted(ids)


def get_samples_by_ids(db: Session, sample_ids: List[int]) -> List[models.Sample]:
    if not sample_ids:
        return []
    return (
        db.query(models.Sample)
        .filter(models.Sample.id.in_(sample_ids))
        .order_by(models.Sample.run, models.Sample.name, models.Sample.id)
        .all()
    )


def get_fastqs_for_samples(db: Session, sample_ids: List[int]) -> Dict[int, List[str]]:
    files: Dict[int, List[str]] = {sample_id: [] for sample_id in sample_ids}
    if not sample_ids:
        return files

    fastqs = (
        db.query(models.Fastq)
        .filter(models.Fastq.sample_id.in_(sample_ids))
        .order_by(models.Fastq.sample_id, models.Fastq.filename)
        .all()
    )
    for fastq in fastqs:
        files.setdefault(fastq.sample_id, []).append(fastq.filename)
    return files


def checkout_samples(db: Session, sample_ids: List[int]) -> List[models.CheckoutSample]:
    samples = get_samples_by_ids(db, sample_ids)
    files = get_fastqs_for_samples(db, [s.id for s in samples])
    return [models.CheckoutSample(**sample.model_dump(), files=files.get(sample.id, [])) for sample in samples]


# === Export ===
SAMPLESHEET_COLUMNS = ["id", "run", "name", "dna_nr", "project", "lims_id", "primer_set", "cells", "files"]


def write_samplesheet(samples: List[models.CheckoutSample], output_format: enums.OutputFormat) -> str:
    """Render checked-out samples as CSV or as a tab-separated sample sheet"""
    delimiter = "\t" if output_format == enums.OutputFormat.tsv else ","
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=SAMPLESHEET_COLUMNS, delimiter=delimiter, extrasaction="ignore")
    writer.writeheader()
    for sample in samples:
        row = sample.model_dump()
        row["files"] = ",".join(sample.files)
        writer.writerow(row)
    data = output.getvalue()
    output.close()
    return data
