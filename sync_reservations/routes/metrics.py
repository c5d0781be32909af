"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP reservations_records_total Total number of records seen by the reconciler
        # TYPE reservations_records_total counter
        reservations_records_total{channel="Agoda",outcome="processed"} 42.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Return metrics in Prometheus text-based exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
