from fastapi import APIRouter, Depends, HTTPException, Response

from deskwise.dependencies import get_metrics
from deskwise.infra.metrics import Metrics

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint(metrics_client: Metrics = Depends(get_metrics)) -> Response:
    if not metrics_client.enabled:
        raise HTTPException(status_code=404, detail="Metrics disabled")
    payload, content_type = metrics_client.render()
    return Response(content=payload, media_type=content_type)
