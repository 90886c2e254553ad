# services/review_api/app/main.py
from __future__ import annotations

import os
import tempfile
from contextlib import asynccontextmanager
from datetime import date
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from services.payment_import.fetcher import FetchError
from services.payment_import.orchestrator import run_payment_import
from services.payment_import.review import (
    DonationNotFoundError,
    InvalidStatusError,
    ReviewQueryError,
    list_review_queue,
    serialize_donation,
    update_donation_status,
)
from services.payment_import.settings import get_settings
from services.shared.db import get_engine
from services.shared.log_config import get_logger

from .. import __version__
from .middleware import RequestContextMiddleware

logger = get_logger(__name__)


@lru_cache()
def get_db_engine() -> Engine:
    """Engine built from DATABASE_URL, created on first use."""
    config = get_settings()
    if not config.database_url:
        raise RuntimeError("DATABASE_URL not set")
    return get_engine(config.database_url)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    # Only dispose an engine that was actually created
    if get_db_engine.cache_info().currsize:
        get_db_engine().dispose()


app = FastAPI(title="Donation Review API", version=__version__, lifespan=lifespan)
app.add_middleware(RequestContextMiddleware)


class StatusUpdate(BaseModel):
    new_status: str


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/donations/review")
def review_queue(
    status_filter: Optional[str] = Query(None, alias="status"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    per_page: int = 25,
    engine: Engine = Depends(get_db_engine),
) -> Dict[str, Any]:
    """Donations that are not succeeded, newest first."""
    try:
        with engine.connect() as conn:
            result = list_review_queue(
                conn,
                status=status_filter,
                date_from=date_from,
                date_to=date_to,
                page=page,
                per_page=per_page,
            )
    except ReviewQueryError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return result.to_dict()


@app.patch("/donations/{donation_id}/status")
def set_donation_status(
    donation_id: int,
    body: StatusUpdate,
    engine: Engine = Depends(get_db_engine),
) -> Dict[str, Any]:
    """Manual status override; any of the five statuses is accepted."""
    try:
        with engine.begin() as conn:
            row = update_donation_status(conn, donation_id, body.new_status)
    except InvalidStatusError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except DonationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return serialize_donation(row)


@app.post("/imports/payments")
async def import_payments(
    request: Request,
    engine: Engine = Depends(get_db_engine),
) -> Dict[str, Any]:
    """Run the payment import on a CSV sent as the raw request body."""
    body = await request.body()
    if not body.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Empty CSV upload")

    fd, path = tempfile.mkstemp(suffix=".csv", prefix="payment_import_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(body)
        summary = await run_in_threadpool(run_payment_import, path, engine)
    except FetchError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    finally:
        os.unlink(path)

    logger.info("Upload imported", processed=summary.processed, failed_rows=len(summary.row_errors))
    return summary.to_dict()
