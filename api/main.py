from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import math
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import MetaValuesResponse, QueryModel, RevisionResponse
from catalog.dashboard import compute_filter_options, compute_status_dashboard, compute_works_table, export_frame
from catalog.documents import DocumentSource, FileSystemDocumentSource
from catalog.filters import SortState, normalize_filters, normalize_sort
from catalog.loader import ReactiveLoader
from catalog.queries import display_text, get_unique_values
from catalog.schema import schema_to_dict
from catalog.settings import CatalogSettings, configure_logging, load_settings


logger = logging.getLogger(__name__)
router = APIRouter()


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _state(request: Request) -> Tuple[CatalogSettings, ReactiveLoader]:
    return request.app.state.settings, request.app.state.loader


def _sort_from_model(model: QueryModel, settings: CatalogSettings) -> Optional[SortState]:
    return normalize_sort(
        model.sort_field,
        model.sort_desc if model.sort_field else settings.ui.default_sort_desc,
        default_field=settings.ui.default_sort_column,
    )


def _revision_payload(loader: ReactiveLoader) -> dict:
    snap = loader.snapshot()
    return RevisionResponse(
        revision=snap.revision,
        state=loader.state.value,
        count=len(snap.items),
        last_error=str(loader.last_error) if loader.last_error is not None else None,
    ).model_dump()


@router.get("/meta/revision")
def meta_revision(request: Request):
    try:
        _, loader = _state(request)
        return _json(_revision_payload(loader))
    except Exception as exc:
        logger.exception("meta_revision failed")
        return _error(exc)


@router.get("/meta/fields")
def meta_fields(request: Request):
    try:
        settings, _ = _state(request)
        return _json(schema_to_dict(settings.schema))
    except Exception as exc:
        logger.exception("meta_fields failed")
        return _error(exc)


@router.get("/meta/values/{field}")
def meta_values(request: Request, field: str, q: str = Query(default="")):
    try:
        settings, loader = _state(request)
        if settings.schema.field(field) is None:
            return _json(MetaValuesResponse(field=field, values=[]).model_dump())
        values = [display_text(v) for v in get_unique_values(loader.snapshot().items, field)]
        needle = (q or "").strip().casefold()
        if needle:
            values = [v for v in values if needle in v.casefold()]
        values = sorted(set(values), key=str.casefold)[:500]
        return _json(MetaValuesResponse(field=field, values=values).model_dump())
    except Exception as exc:
        logger.exception("meta_values failed")
        return _error(exc)


@router.get("/meta/filters")
def meta_filters(request: Request):
    try:
        settings, loader = _state(request)
        return _json(compute_filter_options(settings, loader.snapshot()))
    except Exception as exc:
        logger.exception("meta_filters failed")
        return _error(exc)


@router.post("/items")
def items(request: Request, query: QueryModel):
    try:
        settings, loader = _state(request)
        return _json(
            compute_works_table(
                settings,
                loader.snapshot(),
                normalize_filters(query.model_dump()["filters"]),
                sort=_sort_from_model(query, settings),
                page=query.page,
                page_size=query.page_size,
            )
        )
    except Exception as exc:
        logger.exception("items failed")
        return _error(exc)


@router.post("/status")
def status(
    request: Request,
    query: QueryModel,
    group_by: Optional[str] = Query(default=None),
    sort_by: Optional[str] = Query(default=None),
):
    try:
        settings, loader = _state(request)
        return _json(
            compute_status_dashboard(
                settings,
                loader.snapshot(),
                normalize_filters(query.model_dump()["filters"]),
                group_by=group_by or None,
                sort_by=sort_by or None,
            )
        )
    except Exception as exc:
        logger.exception("status failed")
        return _error(exc)


@router.post("/refresh")
def refresh(request: Request):
    try:
        _, loader = _state(request)
        loader.refresh()
        return _json(_revision_payload(loader))
    except Exception as exc:
        logger.exception("refresh failed")
        return _error(exc)


@router.post("/export")
def export(request: Request, query: QueryModel):
    settings, loader = _state(request)
    sort = normalize_sort(query.sort_field, query.sort_desc) if query.sort_field else None
    export_df = export_frame(settings, loader.snapshot(), normalize_filters(query.model_dump()["filters"]), sort)
    filename = "works.csv"
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


def create_app(settings: Optional[CatalogSettings] = None, source: Optional[DocumentSource] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or load_settings()
        configure_logging(cfg.log_level)
        loader = ReactiveLoader(source or FileSystemDocumentSource(cfg.catalog_path), cfg.schema)
        app.state.settings = cfg
        app.state.loader = loader
        # the first scan reads every document; keep it off the event loop
        snap = await run_in_threadpool(loader.start)
        logger.info("Serving '%s' (revision %d, %d items)", cfg.schema.catalog_name, snap.revision, len(snap.items))
        try:
            yield
        finally:
            await run_in_threadpool(loader.close)

    app = FastAPI(title="Catalog Dashboard API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
