from __future__ import annotations

import logging
import math
from functools import lru_cache
from pathlib import Path

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import Button, ControlChange, ControlVector, DatasetListResponse, DatasetLoadModel, FilterModel, LoadTableModel
from core.charts import build_chart, to_vega_spec
from core.config import get_settings, parse_origins
from core.errors import ConfigurationError
from core.metadata import MetadataRegistry, load_registry
from core.session import PivotSession

settings = get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

app = FastAPI(title="Pivot Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=parse_origins(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_registry() -> MetadataRegistry:
    return load_registry(get_settings().metadata_dir)


@lru_cache(maxsize=1)
def get_session() -> PivotSession:
    session = PivotSession(get_registry(), get_settings())
    if get_registry().datasets():
        session.load()
    return session


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


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    if isinstance(exc, ConfigurationError) and status_code == 500:
        status_code = 400
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/datasets")
def meta_datasets():
    try:
        return _json(DatasetListResponse(datasets=get_registry().datasets()).model_dump())
    except Exception as exc:
        logger.exception("meta_datasets failed")
        return _error(exc)


@app.post("/dataset/{name}")
def dataset(name: str, body: DatasetLoadModel | None = None):
    try:
        if not get_registry().exists(name):
            return _error(ConfigurationError(f'Dataset "{name}" does not exist'), status_code=404)
        session = get_session()
        session.load(name, raw_data=body.rows if body else None)
        if body and body.datapoint:
            session.apply({"type": "change_control", "name": "datapoint", "value": body.datapoint})
        return _json(session.view())
    except Exception as exc:
        logger.exception("dataset failed")
        return _error(exc)


@app.post("/control")
def control(change: ControlChange):
    try:
        session = get_session()
        session.apply({"type": "change_control", "name": change.name, "value": change.value})
        return _json(session.view())
    except Exception as exc:
        logger.exception("control failed")
        return _error(exc)


@app.post("/controls")
def controls(vector: ControlVector):
    try:
        session = get_session()
        session.apply({"type": "change_control_vector", "controls": vector.controls})
        return _json(session.view())
    except Exception as exc:
        logger.exception("controls failed")
        return _error(exc)


@app.post("/filter")
def pivot_filter(body: FilterModel):
    try:
        session = get_session()
        session.apply({"type": "change_filter", "filter": body.filter})
        return _json(session.view())
    except Exception as exc:
        logger.exception("filter failed")
        return _error(exc)


@app.post("/load")
def load(body: LoadTableModel):
    try:
        session = get_session()
        session.apply({"type": "change_load", "loadTable": body.as_table()})
        return _json(session.view())
    except Exception as exc:
        logger.exception("load failed")
        return _error(exc)


@app.post("/button/{button}")
def button(button: Button):
    try:
        session = get_session()
        session.apply({"type": "press_button", "button": button})
        return _json(session.view())
    except Exception as exc:
        logger.exception("button failed")
        return _error(exc)


@app.get("/view")
def view():
    try:
        return _json(get_session().view())
    except Exception as exc:
        logger.exception("view failed")
        return _error(exc)


@app.get("/chart")
def chart():
    try:
        session = get_session()
        state = session.view()
        if state.get("loading"):
            return _json({"spec": None})
        metadata = session.metadata
        axes = dict(state["axes"])
        if metadata.has_column(axes.get("animate")):
            axes["animate"] = metadata.get_alias(axes["animate"])
        built = build_chart(state["processedData"], axes, metadata.get_alias(state["datapointCol"]))
        return _json({"spec": to_vega_spec(built) if built is not None else None})
    except Exception as exc:
        logger.exception("chart failed")
        return _error(exc)


@app.get("/export")
def export():
    state = get_session().view()
    export_df = pd.DataFrame(state.get("processedData") or [])
    filename = f"{Path(state.get('dataset') or 'pivot').stem}.csv"
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
