import datetime
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict
from sqlalchemy import BigInteger, Column, Text
from sqlmodel import SQLModel, Field
import enums
import os

# Empty schema means the connection's default search path (public on PostgreSQL)
DB_SCHEMA = os.environ.get("DB_SCHEMA", "")


def qualified(table: str) -> str:
    return f"{DB_SCHEMA}.{table}" if DB_SCHEMA else table


def _table_args() -> Dict[str, Any]:
    return {"schema": DB_SCHEMA} if DB_SCHEMA else {}


# === Schema: run / sample / fastq ===


class RunBase(SQLModel):
    name: str = Field(primary_key=True, max_length=100)
    date: datetime.date
    assay: str = Field(nullable=False)
    chemistry: str = Field(nullable=False)
    description: Optional[str] = Field(default=None)
    investigator: str = Field(nullable=False, max_length=8)
    path: str = Field(sa_column=Column(Text, nullable=False))


class Run(RunBase, table=True):
    __tablename__ = "run"
    __table_args__ = _table_args()


class SampleBase(SQLModel):
    run: str = Field(foreign_key=f"{qualified('run')}.name", nullable=False, max_length=200)
    name: str = Field(nullable=False, max_length=200)
    dna_nr: str = Field(nullable=False, max_length=200)
    project: str = Field(nullable=False, max_length=200)
    lims_id: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    primer_set: Optional[str] = Field(default=None, max_length=200)
    cells: Optional[int] = Field(default=None)


class Sample(SampleBase, table=True):
    __tablename__ = "sample"
    __table_args__ = _table_args()

    id: Optional[int] = Field(default=None, primary_key=True)


class Fastq(SQLModel, table=True):
    __tablename__ = "fastq"
    __table_args__ = _table_args()

    filename: str = Field(primary_key=True, max_length=1024)
    sample_id: int = Field(foreign_key=f"{qualified('sample')}.id", primary_key=True)


# === Filter predicates ===


class WildcardPredicate(BaseModel):
    """`column=pattern` on a text column; `%` matches zero or more characters."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["TextWildcard"] = "TextWildcard"
    column: str
    operator: Literal[enums.CompareOp.WILDCARD_EQUALS] = enums.CompareOp.WILDCARD_EQUALS
    value: str


class NumericPredicate(BaseModel):
    """`column<op>N` on a nullable integer column."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["NumericComparison"] = "NumericComparison"
    column: str
    operator: enums.CompareOp
    value: int


Predicate = Union[WildcardPredicate, NumericPredicate]


class QuerySpec(BaseModel):
    sql: str
    params: Dict[str, Any]
    predicates: List[Predicate] = []
    limit: int
    joins: List[str] = []


# === API models ===


class SampleRow(SQLModel):
    id: int
    run: str
    name: str
    dna_nr: str
    project: str
    lims_id: Optional[int] = None
    primer_set: Optional[str] = None
    cells: Optional[int] = None


class SampleSearchRequest(SQLModel):
    filter: Optional[str] = ""
    limit: Optional[int] = None
    selected_samples: List[Union[int, str]] = []


class SampleSearchResponse(SQLModel):
    data: List[SampleRow]
    count: int
    warnings: List[str] = []
    limit: int
    limit_reached: bool = False
    selected: List[bool] = []


class ExplainResponse(SQLModel):
    sql: str
    params: Dict[str, Any]
    limit: int
    warnings: List[str] = []


class ColumnInfo(SQLModel):
    name: str
    kind: enums.ColumnKind
    source: str
    operators: List[str]
    descriptions: Dict[str, str] = {}


class ColumnsResponse(SQLModel):
    columns: List[ColumnInfo]
    limits: List[int]


class CheckoutRequest(SQLModel):
    selected_samples: List[Union[int, str]] = []
    output_format: enums.OutputFormat = enums.OutputFormat.json


class CheckoutSample(SampleRow):
    files: List[str] = []


class CheckoutResponse(SQLModel):
    samples: List[CheckoutSample]
    count: int
