"""Web server exposing the engagement report and the quality scorer.

This module exposes a typed API using FastAPI.  The report endpoint is a
read-only query; all record fetching happens inside
:func:`run_engagement_report`.  The server can be run standalone::

    uvicorn engagement_analytics.api.server:app --reload

or with ``python -m engagement_analytics.api.server``.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..analytics.errors import InvalidRequestError
from ..analytics.quality import QualitySignals, positive_from_ratings, score_content
from ..analytics.report import ReportRequest, run_engagement_report, validate_request
from ..settings import get_settings

app = FastAPI(title="Engagement Analytics API")


class QualityRequest(BaseModel):
    positive: int = Field(0, ge=0)
    total: int = Field(0, ge=0)
    ratings: Optional[Dict[str, int]] = None
    has_thumbnail: bool = False
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    downloads: int = Field(0, ge=0)
    views: int = Field(0, ge=0)
    favorites: int = Field(0, ge=0)


@app.get("/health", summary="Health check")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/analytics/engagement", summary="Engagement and cohort report")
def engagement_report(
    tenant_id: Optional[str] = None,
    cohort_type: Optional[str] = None,
    include_churn: Optional[bool] = None,
    days: Optional[int] = None,
    tenant_id_camel: Optional[str] = Query(None, alias="tenantId"),
    cohort_type_camel: Optional[str] = Query(None, alias="cohortType"),
    include_churn_camel: Optional[bool] = Query(None, alias="includeChurn"),
) -> JSONResponse:
    """Return the full report, or ``{"ok": false, "error": ...}``.

    Parameters are accepted in snake_case or camelCase.  Validation errors
    answer 400 before any record is read; source failures answer 500.
    """
    if include_churn is None:
        include_churn = include_churn_camel
    request = ReportRequest(
        tenant_id=tenant_id or tenant_id_camel,
        cohort_type=cohort_type or cohort_type_camel or "monthly",
        include_churn=True if include_churn is None else include_churn,
        days=days,
    )
    try:
        validate_request(request)
    except InvalidRequestError as exc:
        return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)

    result = run_engagement_report(request)
    return JSONResponse(result, status_code=200 if result["ok"] else 500)


@app.post("/quality/score", summary="Quality score of a content item")
async def quality(req: QualityRequest) -> Dict[str, object]:
    """Score a template or campaign from its outcomes and presentation."""
    positive, total = req.positive, req.total
    if req.ratings:
        positive, total = positive_from_ratings(req.ratings)
    signals = QualitySignals(
        has_thumbnail=req.has_thumbnail,
        description=req.description,
        tag_count=len(req.tags),
        has_category=bool(req.category),
        downloads=req.downloads,
        views=req.views,
        favorites=req.favorites,
    )
    return score_content(positive, total, signals).as_dict()


def create_app() -> FastAPI:
    """Return the FastAPI application instance."""
    return app


if __name__ == "__main__":  # pragma: no cover - manual invocation
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level="info")
