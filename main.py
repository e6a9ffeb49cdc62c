import io
from typing import List, Optional
from fastapi import APIRouter, FastAPI, Depends, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
import crud
import enums
import models
from database import SessionLocal
from logging_setup import logger
from search import (
    ALLOWED_LIMITS,
    FieldResolver,
    QueryBuildError,
    SearchEngine,
    SearchOperators,
    SqlSampleStore,
    StoreError,
)
from search.engine import SearchResult

SELECTION_COOKIE = "selected_samples"

app = FastAPI(title="Vault API", description="API for browsing sequencing runs, samples and their fastq files")
router = APIRouter()


# Dependency
def get_db():
    db = SessionLocal()
    logger.debug("Database session opened")
    try:
        yield db
    finally:
        db.close()


def get_search_engine(db: Session = Depends(get_db)) -> SearchEngine:
    return SearchEngine(SqlSampleStore(db))


def run_search(engine: SearchEngine, filter_str: Optional[str], limit: Optional[int]) -> SearchResult:
    try:
        return engine.search(filter_str, limit)
    except QueryBuildError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


def read_selection_cookie(request: Request) -> List[str]:
    cookie = request.cookies.get(SELECTION_COOKIE)
    return cookie.split(",") if cookie else []


def store_selection_cookie(response: Response, sample_ids: List[int]):
    response.set_cookie(SELECTION_COOKIE, ",".join(str(i) for i in sample_ids))


def to_response(result: SearchResult, selected_ids: Optional[List[int]] = None) -> models.SampleSearchResponse:
    selected = [row.id in selected_ids for row in result.rows] if selected_ids is not None else []
    return models.SampleSearchResponse(
        data=result.rows,
        count=result.count,
        warnings=result.warnings,
        limit=result.limit,
        limit_reached=result.limit_reached,
        selected=selected,
    )


# === Sample search endpoints ===
@router.get("/samples", response_model=models.SampleSearchResponse)
def search_samples(
    response: Response,
    filter: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    engine: SearchEngine = Depends(get_search_engine),
):
    """
    Filter samples with the free-text filter language.

    - **filter**: whitespace-separated `column=value` / `column>=N` / `column<=N` clauses
    - **limit**: one of 50, 100, 200, 500, 1000
    """
    logger.debug(f"GET /samples: filter {filter!r} limit {limit}")
    result = run_search(engine, filter, limit)

    # a fresh query starts a fresh selection
    response.delete_cookie(SELECTION_COOKIE)
    return to_response(result)


@router.post("/samples", response_model=models.SampleSearchResponse)
def search_samples_with_selection(
    payload: models.SampleSearchRequest,
    request: Request,
    response: Response,
    engine: SearchEngine = Depends(get_search_engine),
):
    """
    Filter samples while keeping the current selection.

    Selected sample ids from the request and the selection cookie are merged and stored back.
    """
    logger.debug(f"POST /samples: {payload}")
    result = run_search(engine, payload.filter, payload.limit)

    selected_ids = crud.parse_sample_ids(list(payload.selected_samples) + read_selection_cookie(request))
    store_selection_cookie(response, selected_ids)
    return to_response(result, selected_ids)


@router.post("/search/explain", response_model=models.ExplainResponse)
def explain_search(payload: models.SampleSearchRequest, engine: SearchEngine = Depends(get_search_engine)):
    """
    Compile a filter without executing it. Useful for debugging.
    """
    try:
        compiled = engine.compile(payload.filter, payload.limit)
    except QueryBuildError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return models.ExplainResponse(
        sql=compiled.query.sql,
        params=compiled.query.params,
        limit=compiled.query.limit,
        warnings=compiled.warnings,
    )


@router.get("/search/columns", response_model=models.ColumnsResponse)
def get_search_columns():
    """
    List the filterable columns, their operators and the allowed limits.
    """
    columns = [
        models.ColumnInfo(
            name=column.name,
            kind=column.kind,
            source=f"{column.source_relation.value}.{column.source_column}",
            operators=SearchOperators.operators_for(column.kind),
            descriptions=SearchOperators.describe(column.kind),
        )
        for column in FieldResolver().get_available_columns()
    ]
    return models.ColumnsResponse(columns=columns, limits=list(ALLOWED_LIMITS))


# === Checkout ===
@router.post("/checkout", response_model=models.CheckoutResponse)
def checkout(
    payload: models.CheckoutRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Collect the selected samples together with their fastq files.

    - **output_format**: json, csv or tsv (tab-separated sample sheet)
    """
    sample_ids = crud.parse_sample_ids(list(payload.selected_samples) + read_selection_cookie(request))
    logger.debug(f"Checkout: {sample_ids}")
    samples = crud.checkout_samples(db, sample_ids)

    if payload.output_format in (enums.OutputFormat.csv, enums.OutputFormat.tsv):
        extension = payload.output_format.value
        data = crud.write_samplesheet(samples, payload.output_format)
        streaming = StreamingResponse(
            io.StringIO(data),
            media_type="text/tab-separated-values" if extension == "tsv" else "text/csv",
            headers={"Content-Disposition": f"attachment; filename=samplesheet.{extension}"},
        )
        store_selection_cookie(streaming, sample_ids)
        return streaming

    store_selection_cookie(response, sample_ids)
    return models.CheckoutResponse(samples=samples, count=len(samples))


# === Runs ===
@router.get("/runs", response_model=List[models.Run])
def get_runs(skip: int = 0, limit: int = 5, db: Session = Depends(get_db)):
    return crud.get_runs(db, skip=skip, limit=limit)


@router.get("/runs/{run_name}", response_model=models.Run)
def get_run(run_name: str, db: Session = Depends(get_db)):
    run = crud.get_run(db, run_name)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run


app.include_router(router)
