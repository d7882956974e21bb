import uuid

import pytest
from fastapi.testclient import TestClient

from deskwise.domain.scheduling import schemas
from deskwise.domain.scheduling import service as schedule_service
from deskwise.infra.metrics import Metrics, configure_metrics
from deskwise.main import create_app
from deskwise.settings import settings

DEFAULT_ORG_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


def test_disabled_metrics_render_placeholder():
    payload, content_type = Metrics(enabled=False).render()

    assert payload == b"metrics_disabled 1\n"
    assert content_type.startswith("text/plain")


def test_enabled_metrics_record_schedule_activity():
    client = Metrics(enabled=True)
    client.record_schedule_operation("created", 3)
    client.record_schedule_conflict()
    client.record_slot_search(False)
    client.record_http_request("GET", "/v1/schedule", 200)

    payload, _ = client.render()
    text = payload.decode()

    assert 'schedule_operations_total{operation="created"} 3.0' in text
    assert "schedule_conflicts_total 1.0" in text
    assert 'schedule_slot_searches_total{result="not_found"} 1.0' in text
    assert 'http_requests_total{method="GET",path="/v1/schedule",status_code="200"} 1.0' in text


@pytest.mark.anyio
async def test_service_records_series_creation(async_session_maker):
    shared = configure_metrics(True)
    try:
        payload = schemas.RecurringSeriesCreate(
            title="Standup",
            technician_id="tech-1",
            start="2024-01-01 09:00",
            end="2024-01-01 09:15",
            recurrence_pattern={"type": "daily", "occurrences": 2},
        )
        async with async_session_maker() as session:
            await schedule_service.create_recurring_series(session, DEFAULT_ORG_ID, payload)

        text = shared.render()[0].decode()
        assert 'schedule_operations_total{operation="created"} 3.0' in text
    finally:
        configure_metrics(False)


def test_metrics_endpoint_when_enabled(async_session_maker):
    settings.metrics_enabled = True
    try:
        metrics_app = create_app(settings)
        metrics_app.state.db_session_factory = async_session_maker
        with TestClient(metrics_app) as test_client:
            test_client.get("/healthz")
            response = test_client.get("/metrics")
    finally:
        configure_metrics(False)

    assert response.status_code == 200
    assert 'http_requests_total{method="GET",path="/healthz",status_code="200"} 1.0' in response.text
