"""FastAPI application for the external import trigger and import status."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from feedsync.db.catalog import CatalogStore
from feedsync.db.jobs import JobStore
from feedsync.db.options import OptionStore
from feedsync.db.session import create_engine_from_env
from feedsync.ingest import load_sources
from feedsync.ingest.models import GVAMAX
from feedsync.jobs.imports import build_trigger
from feedsync.jobs.trigger import ImportTrigger, TriggerRejected
from feedsync.logic.property import property_view
from feedsync.logic.reconcile import read_progress
from feedsync.utils.logs import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    yield


app = FastAPI(title="feedsync", lifespan=lifespan)


class CronResponse(BaseModel):
    results: list[dict[str, Any]]


class SourceStatus(BaseModel):
    name: str
    cursor: int
    status: str
    status_updated: int | None = None
    pending_jobs: int


class StatusResponse(BaseModel):
    sources: list[SourceStatus]


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class PropertyResponse(BaseModel):
    sku: str
    name: str
    price: float | None = None
    status: str
    operation: str | None = None
    type: str | None = None
    zones: list[str]
    primary_zone: str | None = None
    whatsapp: str
    whatsapp_url: str
    terrain_m2: str | None = None
    covered_m2: str | None = None
    environments: str | None = None
    bedrooms: str | None = None
    bathrooms: str | None = None
    antiquity: str | None = None
    address: str
    neighborhood: str | None = None
    city: str | None = None
    coordinates: Coordinates


def get_engine() -> Engine:
    return create_engine_from_env()


def get_trigger(engine: Engine = Depends(get_engine)) -> ImportTrigger:
    return build_trigger(engine)


@app.api_route("/cron", methods=["GET", "POST"], response_model=CronResponse)
async def cron(request: Request, trigger: ImportTrigger = Depends(get_trigger)) -> CronResponse:
    params = request.query_params
    extra = {key for key in params.keys() if key != "pass"}
    if len(params.getlist("pass")) > 1:
        extra.add("pass")
    try:
        results = await trigger.on_trigger_request(params.get("pass"), extra_params=extra)
    except TriggerRejected as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.reason) from exc
    return CronResponse(results=[result.as_dict() for result in results])


@app.get("/status", response_model=StatusResponse)
async def status(engine: Engine = Depends(get_engine)) -> StatusResponse:
    options = OptionStore(engine)
    sources = []
    for source in load_sources():
        progress = read_progress(options, source.name)
        sources.append(
            SourceStatus(
                name=source.name,
                pending_jobs=JobStore(engine, source.name).pending_count(),
                **progress,
            )
        )
    return StatusResponse(sources=sources)


@app.get("/properties/{sku}", response_model=PropertyResponse)
async def get_property(sku: str, engine: Engine = Depends(get_engine)) -> PropertyResponse:
    view = property_view(CatalogStore(engine, GVAMAX), sku)
    if view is None:
        raise HTTPException(status_code=404, detail="Property not found")
    return PropertyResponse(**view.as_dict())
