import datetime
import os
import sys
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

# Tests run against an in-memory SQLite database instead of PostgreSQL
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_SCHEMA"] = ""

# Add the parent directory to sys.path to allow imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Now import from the project directly
import models
from database import build_engine
from db.init_db import create_db_and_tables
from main import app, get_db

TEST_DATABASE_URL = "sqlite://"

RUN_2021 = "210401_M12345_0000000-ABCDE"
RUN_2022 = "220115_M12345_0000001-FGHIJ"


@pytest.fixture(scope="module")
def test_engine():
    """Create an engine for the test database"""
    engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_db(test_engine):
    """Create a fresh database session for each test"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine, class_=Session)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        # Clean up data after each test
        db.rollback()
        for table in ("fastq", "sample", "run"):
            db.execute(text(f"DELETE FROM {models.qualified(table)}"))
        db.commit()
        db.close()


@pytest.fixture
def client(test_db):
    """Create a test client with the test database"""

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def make_run(name: str, run_date: datetime.date) -> models.Run:
    return models.Run(
        name=name,
        date=run_date,
        assay="IGH",
        chemistry="Amplicon",
        description=None,
        investigator="ab",
        path=f"/mnt/ngs/01-Rohdaten/{name}",
    )


@pytest.fixture
def preload_samples(test_db):
    """
    Two runs, four samples:

    | id | run      | name    | project | primer_set | cells | lims_id | fastqs       |
    |----|----------|---------|---------|------------|-------|---------|--------------|
    | 1  | RUN_2021 | S1      | MS_ALL  | FR1        | 18000 | 1001    | R1, R2       |
    | 2  | RUN_2021 | S2      | IGH     | -          | 12000 | -       | R1           |
    | 3  | RUN_2022 | S3      | ms_all  | FR2        | -     | 1003    | R1           |
    | 4  | RUN_2022 | Control | IGH     | FR1        | -     | 42      | -            |
    """
    test_db.add_all(
        [
            make_run(RUN_2021, datetime.date(2021, 4, 1)),
            make_run(RUN_2022, datetime.date(2022, 1, 15)),
        ]
    )
    test_db.flush()
    test_db.add_all(
        [
            models.Sample(
                id=1, run=RUN_2021, name="S1", dna_nr="21-0001", project="MS_ALL",
                primer_set="FR1", cells=18000, lims_id=1001,
            ),
            models.Sample(
                id=2, run=RUN_2021, name="S2", dna_nr="21-0002", project="IGH",
                primer_set=None, cells=12000, lims_id=None,
            ),
            models.Sample(
                id=3, run=RUN_2022, name="S3", dna_nr="22-0003", project="ms_all",
                primer_set="FR2", cells=None, lims_id=1003,
            ),
            models.Sample(
                id=4, run=RUN_2022, name="Control", dna_nr="22-0004", project="IGH",
                primer_set="FR1", cells=None, lims_id=42,
            ),
        ]
    )
    test_db.flush()
    test_db.add_all(
        [
            models.Fastq(filename="S1_L001_R1_001.fastq.gz", sample_id=1),
            models.Fastq(filename="S1_L001_R2_001.fastq.gz", sample_id=1),
            models.Fastq(filename="S2_L001_R1_001.fastq.gz", sample_id=2),
            models.Fastq(filename="S3_L001_R1_001.fastq.gz", sample_id=3),
        ]
    )
    test_db.commit()
    return test_db


IMPORT_RUN = RUN_2021

SAMPLESHEET = """[Header]
IEMFileVersion,4
Investigator Name,ab
Assay,IGH
Description,marker screening
Chemistry,Amplicon
[Reads]
151
[Data]
Sample_ID,Sample_Name,Sample_Plate,Sample_Well,I7_Index_ID,index,I5_Index_ID,index2,Sample_Project,Description
D-21-00123_FR1,,,,N701,TAAGGCGA,S502,CTCTCTAT,MS_ALL,1001
D-21-00456_IGK,,,,N702,CGTACTAG,S502,CTCTCTAT,MS_ALL,0
"""

CELLSHEET = """sample_ID,ng,volume,comment
D-21-00123_FR1,100,10,
unknown_sample,5,10,
"""


@pytest.fixture
def run_tree(tmp_path):
    """
    A run folder tree with one run and a matching cell sheet tree:

    runs/2021/04/<IMPORT_RUN>/SampleSheet.csv and fastqs in MS_ALL/ and data_extra/
    cells/2021/04_April/20210401_M12345_ab/Start_1/spikeINBC.csv
    """
    run_dir = tmp_path / "runs" / "2021" / "04" / IMPORT_RUN
    (run_dir / "MS_ALL").mkdir(parents=True)
    (run_dir / "data_extra").mkdir()
    (run_dir / "SampleSheet.csv").write_text(SAMPLESHEET)
    for fastq in [
        "MS_ALL/21-00123_FR1_S1_L001_R1_001.fastq.gz",
        "MS_ALL/21-00123_FR1_S1_L001_R2_001.fastq.gz",
        "MS_ALL/21-00456_IGK_S2_L001_R1_001.fastq.gz",
        "MS_ALL/Undetermined_S0_L001_R1_001.fastq.gz",
        "data_extra/Ctrl_S3_L001_R1_001.fastq.gz",
    ]:
        (run_dir / fastq).write_bytes(b"")
    # not a run: too shallow
    (tmp_path / "runs" / "2021" / "notes.txt").write_text("")

    start_dir = tmp_path / "cells" / "2021" / "04_April" / "20210401_M12345_ab" / "Start_1"
    start_dir.mkdir(parents=True)
    (start_dir / "spikeINBC.csv").write_text(CELLSHEET)

    return tmp_path / "runs", tmp_path / "cells"
