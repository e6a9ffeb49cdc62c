"""
Tests for the run folder importer
"""

import datetime
import zipfile
import pytest
import importer
import models
from importer import RunImportError, RunRecord, SampleRecord
from search import SearchEngine, SqlSampleStore
from tests.conftest import IMPORT_RUN, SAMPLESHEET


def make_run() -> RunRecord:
    return RunRecord(name=IMPORT_RUN, date=datetime.date(2021, 4, 1), path=f"/runs/{IMPORT_RUN}")


def test_parse_run_date():
    assert importer.parse_run_date(IMPORT_RUN) == datetime.date(2021, 4, 1)
    with pytest.raises(RunImportError):
        importer.parse_run_date("Archiv_old")


@pytest.mark.parametrize(
    "name, dna_nr, primer_set",
    [
        ("D-21-123_FR1", "21-00123", "FR1"),
        ("21-00456_IGK_rerun", "21-00456", "IGK"),
        ("Control", "", None),
        ("patient 22-7890 TRB", "22-07890", "TRB"),
    ],
)
def test_parse_sample_name(name, dna_nr, primer_set):
    sample = SampleRecord(name=name)
    importer.parse_sample_name(sample)
    assert sample.dna_nr == dna_nr
    assert sample.primer_set == primer_set


@pytest.mark.parametrize(
    "path, expected",
    [
        ("MS_ALL/S1_S1_L001_R1_001.fastq.gz", True),
        ("MS_ALL/Undetermined_S0_L001_R1_001.fastq.gz", False),
        ("Data/Intensities/BaseCalls/S1_S1_L001_R1_001.fastq.gz", False),
        ("MS_ALL/S1_S1_L001_R1_001.fastq", False),
    ],
)
def test_is_fastq(path, expected):
    assert importer.is_fastq(path) is expected


def test_longer_names_claim_their_fastqs_first():
    samples = [SampleRecord(name="S1"), SampleRecord(name="S10")]
    importer.assign_fastqs(samples, ["S10_S2_L001_R1_001.fastq.gz", "S1_S1_L001_R1_001.fastq.gz"])
    files = {s.name: s.files for s in samples}
    assert files == {"S10": ["S10_S2_L001_R1_001.fastq.gz"], "S1": ["S1_S1_L001_R1_001.fastq.gz"]}


def test_unclaimed_fastqs_become_samples():
    samples = []
    importer.assign_fastqs(
        samples,
        [
            "data_x/Ctrl_S3_L001_R1_001.fastq.gz",
            "data_x/Ctrl_S3_L001_R2_001.fastq.gz",
            "weird.fastq.gz",
        ],
    )
    assert [(s.name, s.project, len(s.files)) for s in samples] == [("Ctrl", "data_x", 2), ("Unknown", "", 1)]


def test_parse_samplesheet():
    run = make_run()
    importer.parse_samplesheet(
        run,
        SAMPLESHEET.splitlines(),
        ["MS_ALL/21-00123_FR1_S1_L001_R1_001.fastq.gz", "MS_ALL/21-00456_IGK_S2_L001_R1_001.fastq.gz"],
    )
    assert (run.investigator, run.assay, run.description, run.chemistry) == (
        "ab",
        "IGH",
        "marker screening",
        "Amplicon",
    )
    samples = {s.name: s for s in run.samples}
    assert set(samples) == {"D-21-00123_FR1", "D-21-00456_IGK"}
    first = samples["D-21-00123_FR1"]
    assert (first.dna_nr, first.primer_set, first.project, first.lims_id) == ("21-00123", "FR1", "MS_ALL", 1001)
    assert first.files == ["MS_ALL/21-00123_FR1_S1_L001_R1_001.fastq.gz"]
    assert samples["D-21-00456_IGK"].lims_id is None


def test_samplesheet_with_unexpected_column_count_is_rejected():
    with pytest.raises(RunImportError):
        importer.parse_samplesheet(make_run(), ["[Data]", "Sample_ID,a,b", "S1,a,b"], [])


def test_parse_cellsheet_converts_nanograms_to_cells():
    run = make_run()
    run.samples = [SampleRecord(name="S1"), SampleRecord(name="S2")]
    matched = importer.parse_cellsheet(run, ["sample_ID,ng,volume,comment", "S1,100,10,", "S9,1,1,", ""])
    assert matched == 1
    assert run.samples[0].cells == 15385
    assert run.samples[1].cells is None


def test_malformed_cellsheet_is_rejected():
    with pytest.raises(RunImportError):
        importer.parse_cellsheet(make_run(), ["S1;100"])


def test_read_run_from_folder_tree(run_tree):
    rundir, celldir = run_tree
    assert [p.name for p in importer.discover_runs(rundir)] == [IMPORT_RUN]

    run = importer.read_run(importer.discover_runs(rundir)[0], celldir)
    assert run.date == datetime.date(2021, 4, 1)
    samples = {s.name: s for s in run.samples}
    assert set(samples) == {"D-21-00123_FR1", "D-21-00456_IGK", "Ctrl"}
    assert samples["D-21-00123_FR1"].cells == 15385
    assert sorted(samples["D-21-00123_FR1"].files) == [
        "MS_ALL/21-00123_FR1_S1_L001_R1_001.fastq.gz",
        "MS_ALL/21-00123_FR1_S1_L001_R2_001.fastq.gz",
    ]
    assert samples["Ctrl"].project == "data_extra"


def test_read_run_from_zip(tmp_path):
    archive = tmp_path / f"{IMPORT_RUN}.zip"
    with zipfile.ZipFile(archive, "w") as z:
        z.writestr(f"{IMPORT_RUN}/SampleSheet.csv", SAMPLESHEET)
        z.writestr(f"{IMPORT_RUN}/MS_ALL/21-00456_IGK_S2_L001_R1_001.fastq.gz", b"")

    run = importer.read_run(archive)
    samples = {s.name: s for s in run.samples}
    assert samples["D-21-00456_IGK"].files == [f"{IMPORT_RUN}/MS_ALL/21-00456_IGK_S2_L001_R1_001.fastq.gz"]
    assert samples["D-21-00123_FR1"].files == []


def test_update_populates_the_store(test_db, run_tree):
    rundir, celldir = run_tree
    assert importer.update(test_db, rundir, celldir) == 1

    run = test_db.get(models.Run, IMPORT_RUN)
    assert run.investigator == "ab"

    engine = SearchEngine(SqlSampleStore(test_db))
    result = engine.search("dna_nr=21-00123 cells>=15000")
    assert [row.name for row in result.rows] == ["D-21-00123_FR1"]
    assert result.rows[0].lims_id == 1001

    result = engine.search("filename=%_R2_%")
    assert [row.name for row in result.rows] == ["D-21-00123_FR1"]


def test_update_replaces_previous_content(test_db, run_tree):
    rundir, celldir = run_tree
    importer.update(test_db, rundir, celldir)
    importer.update(test_db, rundir, celldir)
    assert len(test_db.query(models.Sample).all()) == 3
    assert len(test_db.query(models.Fastq).all()) == 4
