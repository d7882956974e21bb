from fastapi import Request

from deskwise.infra.db import get_db_session
from deskwise.infra.metrics import Metrics, metrics


def get_metrics(request: Request) -> Metrics:
    return getattr(request.app.state, "metrics", None) or metrics


__all__ = ["get_db_session", "get_metrics"]
