from __future__ import annotations

import os
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from imobconnect.accounts.models import User
from imobconnect.affiliates.api import get_current_user as affiliate_get_current_user
from imobconnect.core.auth import ActorUser
from imobconnect.core.config import get_settings
from imobconnect.core.database import Base, get_db
from imobconnect.crm.api import get_current_user as crm_get_current_user
from imobconnect.listings.models import Property
from imobconnect.main import app
from imobconnect.otel import attach_inmemory_exporter


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        session.add_all(
            [
                User(id=1, username="ana", password="x", email="ana@example.com", full_name="Ana Souza"),
                User(id=2, username="bruno", password="x", email="bruno@example.com", full_name="Bruno Alves"),
            ]
        )
        session.commit()
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = attach_inmemory_exporter()
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[crm_get_current_user] = lambda: ActorUser(user_id=1)
    app.dependency_overrides[affiliate_get_current_user] = lambda: ActorUser(user_id=2)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/crm/stages", headers={"X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_stage_config_replace_span(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.put(
        "/api/crm/stages/config",
        json={"stages": [{"stageId": "novo", "name": "Novo", "position": 0}, {"stageId": "fim", "name": "Fim", "position": 1}]},
    )
    assert response.status_code == 200

    replace_spans = [span for span in span_exporter.get_finished_spans() if span.name == "crm.stage_configs.replace"]
    assert replace_spans
    assert replace_spans[-1].attributes.get("crm.user_id") == 1
    assert replace_spans[-1].attributes.get("crm.stage_count") == 2


def test_affiliation_request_span(
    client: TestClient,
    db_session: Session,
    span_exporter: InMemorySpanExporter,
) -> None:
    db_session.add(
        Property(
            id=42,
            user_id=1,
            title="Casa",
            address="Rua A",
            price=Decimal("100000"),
            property_type="house",
            available_for_affiliation=True,
        )
    )
    db_session.commit()

    response = client.post("/api/affiliate/request", json={"propertyId": 42})
    assert response.status_code == 201

    request_spans = [span for span in span_exporter.get_finished_spans() if span.name == "affiliate.request"]
    assert request_spans
    assert request_spans[-1].attributes.get("affiliate.user_id") == 2
    assert request_spans[-1].attributes.get("affiliate.property_id") == 42
