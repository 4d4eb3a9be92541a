from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from imobconnect.accounts.models import User
from imobconnect.core.auth import ActorUser
from imobconnect.core.config import get_settings
from imobconnect.core.database import Base, get_db
from imobconnect.crm.api import get_current_user
from imobconnect.crm.models import Lead
from imobconnect.documents.models import Document
from imobconnect.listings.models import Property
from imobconnect.main import app
from imobconnect.models import ActivityLog
from imobconnect.services.activity import RecentActivityService, log_activity, time_ago


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        session.add(User(id=1, username="ana", password="x", email="ana@example.com", full_name="Ana Souza"))
        session.commit()
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _log(db_session: Session, entity_type: str, entity_id: int, action: str, minutes_ago: int, **metadata) -> ActivityLog:
    entry = ActivityLog(
        user_id=1,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        event_metadata=metadata,
        created_at=NOW - timedelta(minutes=minutes_ago),
    )
    db_session.add(entry)
    db_session.commit()
    return entry


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(seconds=30), "Há 0 minutos"),
        (timedelta(minutes=1), "Há 1 minuto"),
        (timedelta(minutes=59), "Há 59 minutos"),
        (timedelta(hours=1), "Há 1 hora"),
        (timedelta(hours=23), "Há 23 horas"),
        (timedelta(days=1), "Há 1 dia"),
        (timedelta(days=6), "Há 6 dias"),
        (timedelta(days=7), "Há 1 semana"),
        (timedelta(days=27), "Há 3 semanas"),
        (timedelta(days=31), "Há 1 mês"),
        (timedelta(days=95), "Há 3 meses"),
    ],
)
def test_time_ago_labels(delta: timedelta, expected: str) -> None:
    assert time_ago(NOW - delta, NOW) == expected


def test_time_ago_treats_naive_values_as_utc() -> None:
    naive = (NOW - timedelta(hours=2)).replace(tzinfo=None)

    assert time_ago(naive, NOW) == "Há 2 horas"


def test_log_activity_joins_caller_transaction(db_session: Session) -> None:
    log_activity(db_session, user_id=1, entity_type="lead", entity_id=5, action="created", metadata={"source": "direct"})
    db_session.rollback()

    assert db_session.query(ActivityLog).count() == 0


def test_feed_maps_supported_events_and_skips_the_rest(db_session: Session) -> None:
    prop = Property(id=9, user_id=1, title="Casa Verde", address="Rua B", price=100, property_type="house")
    lead = Lead(id=3, user_id=1, full_name="Maria Lima", email="maria@example.com", property_id=9)
    quiet_lead = Lead(id=4, user_id=1, full_name="João Reis", email="joao@example.com")
    document = Document(id=8, user_id=1, lead_id=3, title="Contrato", type="contract")
    orphan_document = Document(id=9, user_id=1, title="RG", type="id")
    db_session.add_all([prop, lead, quiet_lead, document, orphan_document])
    db_session.commit()

    _log(db_session, "lead", 4, "created", minutes_ago=50)
    _log(db_session, "lead", 3, "stage_changed", minutes_ago=40, previousStage="qualification", newStage="proposal")
    _log(db_session, "property", 9, "updated", minutes_ago=30)
    _log(db_session, "lead", 3, "stage_changed", minutes_ago=20, previousStage="qualification", newStage="scheduled_visit")
    _log(db_session, "document", 8, "created", minutes_ago=10)
    _log(db_session, "document", 9, "created", minutes_ago=5)

    feed = RecentActivityService().get_recent_activities(db_session, 1, now=NOW)

    assert [item["type"] for item in feed] == ["document", "document", "appointment"]
    assert feed[0]["name"] == "Cliente"
    assert feed[0]["description"] == "Enviou RG para análise"
    assert feed[1]["name"] == "Maria Lima"
    assert feed[1]["icon"] == "article"
    assert feed[2]["description"] == "Visita agendada para Casa Verde"
    assert feed[2]["icon"] == "calendar_today"
    assert feed[2]["timeAgo"] == "Há 20 minutos"


def test_feed_scan_window_and_size_follow_settings(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECENT_ACTIVITY_FEED_SIZE", "5")
    monkeypatch.setenv("RECENT_ACTIVITY_SCAN_LIMIT", "2")
    get_settings.cache_clear()
    for lead_id in range(1, 5):
        db_session.add(Lead(id=lead_id, user_id=1, full_name=f"Lead {lead_id}", email=f"l{lead_id}@example.com"))
    db_session.commit()
    for lead_id in range(1, 5):
        _log(db_session, "lead", lead_id, "created", minutes_ago=10 - lead_id)

    feed = RecentActivityService().get_recent_activities(db_session, 1, now=NOW)

    assert [item["name"] for item in feed] == ["Lead 4", "Lead 3"]
    assert feed[0]["description"] == "Novo lead interessado em seus imóveis"
    assert feed[0]["icon"] == "person"


def test_recent_activities_endpoint(db_session: Session) -> None:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: ActorUser(user_id=1)
    try:
        with TestClient(app) as test_client:
            created = test_client.post(
                "/api/leads",
                json={"fullName": "Paula Nunes", "email": "paula@example.com", "message": "Quero alugar"},
            )
            assert created.status_code == 201
            response = test_client.get("/api/activities/recent")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == [
        {
            "id": response.json()[0]["id"],
            "type": "lead",
            "name": "Paula Nunes",
            "description": "Quero alugar",
            "timeAgo": "Há 0 minutos",
            "icon": "person",
        }
    ]
