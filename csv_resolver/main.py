import logging
import os
from typing import Optional

from fastapi import FastAPI, UploadFile, File, Form, HTTPException
from pydantic import ValidationError

from .models import ResolveRequest, ResolveResponse, HealthResponse
from .resolve import resolve_csv_bytes
from .rules import (
    ACCEPTED_SUFFIX,
    DEFAULT_DELIMITER,
    DEFAULT_QUOTE,
    DEFAULT_SEARCH_MOVES,
    DEFAULT_SEARCH_SECONDS,
)

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("csv_resolver")

app = FastAPI(
    title="csv-resolver",
    description="Resolve malformed CSV with ambiguous delimiters, quotes and newlines",
    version="0.1.0",
)

@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True}

@app.post("/resolve", response_model=ResolveResponse)
async def resolve_csv(
    file: UploadFile = File(...),
    delimiter: str = Form(DEFAULT_DELIMITER),
    quote: str = Form(DEFAULT_QUOTE),
    fixed_column_count: Optional[int] = Form(None),
    absorbing_column: Optional[int] = Form(None),
    header: bool = Form(True),
    max_moves: Optional[int] = Form(DEFAULT_SEARCH_MOVES),
    max_seconds: Optional[float] = Form(DEFAULT_SEARCH_SECONDS),
):
    if not file.filename or not file.filename.lower().endswith(ACCEPTED_SUFFIX):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")

    try:
        request = ResolveRequest(
            fixed_column_count=fixed_column_count,
            absorbing_column=absorbing_column,
            header=header,
            max_moves=max_moves,
            max_seconds=max_seconds,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc

    raw = await file.read()
    try:
        return resolve_csv_bytes(raw, delimiter, quote, request.to_options())
    except ValueError as exc:
        logger.info("rejected %s: %s", file.filename, exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc
