from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response

from opsboard.dashboard import compose_dashboard, export_frame
from opsboard.data import load_snapshot
from opsboard.filters import DashboardSettings, normalize_settings, settings_from_env
from opsboard.roles import ROLE_ALIASES, ROLE_PRECEDENCE, capabilities_for, resolve_role, role_label
from opsboard.views import PageId, visible_pages
from opsboard_api.schemas import MetaPagesResponse, MetaRolesResponse, ResolveRoleRequest, RoleResponse, SettingsModel, ViewRequest


app = FastAPI(title="Opsboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _settings_from_model(model: SettingsModel) -> DashboardSettings:
    raw = {k: v for k, v in model.model_dump().items() if v is not None}
    return normalize_settings(raw, base=settings_from_env())


def _role_payload(role: Any) -> Dict[str, Any]:
    canonical = resolve_role(role)
    return RoleResponse(
        role=canonical.value,
        label=role_label(canonical),
        capabilities=sorted(c.value for c in capabilities_for(canonical)),
    ).model_dump()


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
                type(pd.NaT): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


@app.get("/meta/roles")
def meta_roles():
    try:
        body = MetaRolesResponse(
            roles=[RoleResponse(**_role_payload(role)) for role in ROLE_PRECEDENCE],
            aliases={role.value: sorted(ROLE_ALIASES[role]) for role in ROLE_PRECEDENCE},
        )
        return _json(body.model_dump())
    except Exception as exc:
        logger.exception("meta_roles failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/pages")
def meta_pages(role: Optional[str] = None):
    """All recognized page ids, plus the navigation entries ``role`` is shown."""
    canonical = resolve_role(role)
    body = MetaPagesResponse(
        pages=[p.value for p in PageId],
        role=canonical.value,
        navigation=[p.value for p in visible_pages(canonical)],
    )
    return _json(body.model_dump())


@app.post("/roles/resolve")
def roles_resolve(body: ResolveRoleRequest):
    try:
        return _json(_role_payload(body.role))
    except Exception as exc:
        logger.exception("roles_resolve failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/view/{page}")
def view_page(page: str, body: ViewRequest):
    try:
        snapshot = load_snapshot()
        result = compose_dashboard(
            body.user.model_dump(),
            page,
            body.filters.model_dump(),
            snapshot,
            reference=body.reference,
            settings=_settings_from_model(body.settings),
            view_mode=body.view_mode,
            sub_id=body.sub_id,
        )
        return _json(result)
    except ValueError as exc:
        return JSONResponse(status_code=422, content={"error": str(exc), "type": type(exc).__name__})
    except Exception as exc:
        logger.exception("view %s failed", page)
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/export/{page}")
def export_page(page: str, body: ViewRequest):
    try:
        export_df = export_frame(
            body.user.model_dump(),
            page,
            body.filters.model_dump(),
            load_snapshot(),
            reference=body.reference,
            settings=_settings_from_model(body.settings),
            view_mode=body.view_mode,
            sub_id=body.sub_id,
        )
    except PermissionError as exc:
        return JSONResponse(status_code=403, content={"error": "access denied", "required_capability": str(exc)})
    except ValueError as exc:
        return JSONResponse(status_code=422, content={"error": str(exc), "type": type(exc).__name__})
    except Exception as exc:
        logger.exception("export %s failed", page)
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})

    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    filename = f"{page}.csv"
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
