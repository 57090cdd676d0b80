import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)

from entity_engine.core.tracing import configure_tracing


@pytest.mark.asyncio
async def test_backend_requests_are_traced(client, backend):
    exporter = InMemorySpanExporter()
    provider = configure_tracing(exporter=exporter)
    backend.add("U1", "Alice")

    await client.fetch_record("U1")
    await client.fetch_records(["U1", "U2"])

    assert provider.resource.attributes["service.name"] == "entity-engine"
    assert provider.resource.attributes["deployment.environment"] == "testing"

    spans = {s.name: s for s in exporter.get_finished_spans()}
    assert spans["backend.resolve"].attributes["http.route"] == "/resolve"
    assert spans["backend.resolve"].attributes["http.status_code"] == 200
    assert spans["backend.resolve_batch"].attributes["entity.count"] == 2
