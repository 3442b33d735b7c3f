"""
Integration tests for /metrics endpoint and metrics collection.
"""
from uuid import uuid4

import pytest
from httpx import AsyncClient, ASGITransport

from kmerbeauty.api.app import app
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.models import Service


@pytest.mark.integration
@pytest.mark.asyncio
async def test_metrics_endpoint_returns_prometheus_format():
    """Test /metrics endpoint returns Prometheus text format."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
    
    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain; version=0.0.4; charset=utf-8"
    assert response.text == ""


@pytest.mark.integration
@pytest.mark.asyncio
async def test_metrics_endpoint_exports_after_activity():
    """Test /metrics endpoint exports counters after activity."""
    metrics = get_metrics_collector()
    metrics.increment_provider_searches("ok")
    metrics.increment_provider_searches("failed")
    metrics.increment_backend_errors("nearby_providers", "network_error")
    
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/metrics")
    
    body = response.text
    assert 'provider_searches_total{outcome="ok"} 1' in body
    assert 'provider_searches_total{outcome="failed"} 1' in body
    assert 'backend_errors_total{kind="network_error",operation="nearby_providers"} 1' in body


@pytest.mark.integration
def test_provider_search_is_counted(client, repos):
    service = Service(id=uuid4(), name_fr="Tresses", name_en="Braids", images=[])
    repos.services.services.append(service)

    client.get(f"/services/{service.id}/providers", params={"location": "Douala"})

    assert 'provider_searches_total{outcome="empty"} 1' in client.get("/metrics").text
