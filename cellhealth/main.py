"""
FastAPI application for the CellHealth battery capacity estimator.

This module defines the REST and HTML endpoints: uploading a discharge
dataset, training and evaluating a model on it, downloading the results
report, and predicting the capacity of a single sensor sample.

Usage:
    uvicorn cellhealth.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel

from . import config
from .data.sources import ExampleSource, load_upload
from .errors import CellHealthError, NoDatasetError, SizeLimitError, ValidationError
from .ml.predictor import DEFAULT_INPUTS, CapacityPredictor, PredictionInputs, random_inputs
from .reports import build_report, chart_series, dataset_summary, predictions_table, report_filename
from .session import AnalysisSession, PredictionSession

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application state

app = FastAPI(title="CellHealth", docs_url=None, redoc_url=None)
templates = Jinja2Templates(directory=str(config.TEMPLATES_DIR))

# Executor for training runs; requests await completion
executor = ThreadPoolExecutor(max_workers=1)

# Current upload session, replaced on every upload
ANALYSIS_SESSION: Optional[AnalysisSession] = None

# Interactive predictor and its history, created on first use
PREDICTION_SESSION: Optional[PredictionSession] = None


def get_analysis_session() -> AnalysisSession:
    if ANALYSIS_SESSION is None:
        raise NoDatasetError("No dataset loaded; upload a CSV or JSON file first")
    return ANALYSIS_SESSION


def start_analysis_session(session: AnalysisSession) -> AnalysisSession:
    """Replace the current upload session."""
    global ANALYSIS_SESSION
    ANALYSIS_SESSION = session
    return session


def get_prediction_session() -> PredictionSession:
    global PREDICTION_SESSION
    if PREDICTION_SESSION is None:
        PREDICTION_SESSION = PredictionSession(predictor=CapacityPredictor())
    return PREDICTION_SESSION


# ---------------------------------------------------------------------------
# Error handling

@app.exception_handler(CellHealthError)
async def cellhealth_error_handler(request: Request, exc: CellHealthError) -> JSONResponse:
    """Render pipeline errors as JSON with the status code of the error class."""
    logger.warning("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    payload: Dict[str, Any] = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, ValidationError):
        payload["violations"] = [{"field": v.field, "message": v.message} for v in exc.violations]
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"error": "ValueError", "detail": str(exc)})


# ---------------------------------------------------------------------------
# Templates helpers

def format_number(value: float, decimals: int = 0) -> str:
    """Format numeric values with thousand separators and fixed decimals."""
    return f"{value:,.{decimals}f}".replace(",", " ")

templates.env.filters["format_number"] = format_number

# Format any value: numbers are formatted with thousands separators, others returned unchanged
def format_value(value: Any, decimals: int = 4) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return format_number(value, decimals=0 if isinstance(value, int) else decimals)
    return value

templates.env.filters["format_value"] = format_value


def _result_payload(session: AnalysisSession) -> Dict[str, Any]:
    result = session.require_result()
    return {
        "model": result.model_type,
        "metrics": result.metrics.to_dict(),
        "predictions": predictions_table(result),
        "chart": chart_series(result),
        "evaluated_rows": len(result.actual),
    }


def _history_payload(session: PredictionSession) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in session.history.entries()]


# ---------------------------------------------------------------------------
# HTML routes

@app.get("/", response_class=HTMLResponse)
async def index(request: Request):
    """
    Render the training page: dataset summary, model choice and last results.
    """
    session = ANALYSIS_SESSION
    summary = None
    results = None
    if session is not None:
        summary = dataset_summary(session.filename, session.size_bytes, session.dataset)
        if session.result is not None:
            results = _result_payload(session)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "summary": summary,
            "results": results,
            "model_types": config.MODEL_TYPES,
            "default_model": config.DEFAULT_MODEL_TYPE,
            "default_split": int(config.DEFAULT_TRAIN_SPLIT * 100),
        },
    )


@app.get("/predict", response_class=HTMLResponse)
async def predict_page(request: Request):
    """
    Render the interactive prediction form, and the prediction when the form
    was submitted.

    Parameters arrive in the query string; a GET form avoids the dependency
    on python-multipart.
    """
    params = request.query_params
    session = get_prediction_session()
    values = DEFAULT_INPUTS.to_dict()
    outcome = None
    errors: List[str] = []
    if all(name in params for name in config.INPUT_FIELDS):
        try:
            inputs = PredictionInputs(**{name: float(params[name]) for name in config.INPUT_FIELDS})
        except ValueError as exc:
            errors.append(f"Invalid parameter: {exc}")
        else:
            values = inputs.to_dict()
            try:
                outcome = session.predict(inputs)
            except ValidationError as exc:
                errors.extend(v.message for v in exc.violations)
    return templates.TemplateResponse(
        request,
        "predict.html",
        {
            "values": values,
            "outcome": outcome,
            "errors": errors,
            "history": session.history.entries(),
            "nominal_capacity": config.NOMINAL_CAPACITY_AH,
        },
    )


# ---------------------------------------------------------------------------
# API: batch analysis

@app.post("/api/v1/upload")
async def upload(request: Request, filename: str = Query(..., description="Original file name")):
    """
    Ingest a CSV or JSON dataset sent as the raw request body and start a new
    analysis session with it.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > config.MAX_UPLOAD_BYTES:
        raise SizeLimitError(int(declared), config.MAX_UPLOAD_BYTES)
    content = await request.body()
    df = load_upload(filename, content, max_bytes=config.MAX_UPLOAD_BYTES)
    session = start_analysis_session(AnalysisSession(dataset=df, filename=filename, size_bytes=len(content)))
    logger.info("New analysis session for %s (%d records)", filename, len(df))
    return dataset_summary(session.filename, session.size_bytes, session.dataset)


@app.post("/api/v1/example")
async def load_example(
    n_cycles: int = Query(60, ge=1, le=1000),
    samples_per_cycle: int = Query(5, ge=1, le=100),
):
    """Start a session on synthetic discharge data."""
    df = ExampleSource(n_cycles=n_cycles, samples_per_cycle=samples_per_cycle).load()
    session = start_analysis_session(AnalysisSession(dataset=df, filename="example.csv"))
    return dataset_summary(session.filename, session.size_bytes, session.dataset)


@app.post("/api/v1/train")
async def train(
    model_type: str = Query(config.DEFAULT_MODEL_TYPE),
    train_split: float = Query(config.DEFAULT_TRAIN_SPLIT * 100, ge=0, le=100, description="Percent"),
):
    """
    Train the selected model on the current dataset and return its metrics,
    the first predictions and the chart series.

    Training runs on the executor; the request waits for it to finish.  A
    second request while one is running is rejected with 409.
    """
    session = get_analysis_session()
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(executor, session.train, model_type, train_split / 100)
    return _result_payload(session)


@app.get("/api/v1/results")
async def results():
    return _result_payload(get_analysis_session())


@app.get("/api/v1/report")
async def report():
    """Download the metrics report as a JSON attachment."""
    result = get_analysis_session().require_result()
    generated_at = datetime.now(timezone.utc)
    payload = build_report(result.metrics, result.model_type, generated_at)
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'attachment; filename="{report_filename(generated_at)}"'},
    )


# ---------------------------------------------------------------------------
# API: interactive prediction

class PredictRequest(BaseModel):
    voltage: float
    current: float
    temperature: float
    time: float
    cycle: float


class PredictResponse(BaseModel):
    capacity: float
    health_percent: float
    status: str
    color: str
    remaining_cycles: Optional[int]
    remaining_life: str
    history: List[Dict[str, Any]]


@app.post("/api/v1/predict", response_model=PredictResponse)
async def predict(body: PredictRequest):
    """Predict the capacity of one sensor sample and record it in the history."""
    session = get_prediction_session()
    outcome = session.predict(PredictionInputs(**body.model_dump()))
    if outcome.remaining_cycles is None:
        remaining_life = "cycle count too low to estimate"
    else:
        remaining_life = f"~{outcome.remaining_cycles} cycles"
    return PredictResponse(
        **outcome.to_dict(),
        remaining_life=remaining_life,
        history=_history_payload(session),
    )


@app.get("/api/v1/history")
async def history():
    return {"history": _history_payload(get_prediction_session())}


@app.get("/api/v1/defaults")
async def defaults():
    """Reset and random values for the prediction form."""
    return {"default": DEFAULT_INPUTS.to_dict(), "random": random_inputs().to_dict()}
