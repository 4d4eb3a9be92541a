from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from imobconnect import events
from imobconnect.accounts.models import User
from imobconnect.core.auth import ActorUser
from imobconnect.core.config import get_settings
from imobconnect.core.database import Base, get_db
from imobconnect.crm.api import get_current_user
from imobconnect.crm.models import Lead
from imobconnect.listings.models import Property
from imobconnect.main import app
from imobconnect.models import ActivityLog


def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
    dbapi_connection.execute("PRAGMA foreign_keys=ON")


@pytest.fixture()
def db_session(request: pytest.FixtureRequest) -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Parametrize indirectly with True to enforce foreign keys.
    if getattr(request, "param", False):
        event.listen(engine, "connect", _enable_foreign_keys)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
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
def reset_state() -> Generator[None, None, None]:
    get_settings.cache_clear()
    events.published_events.clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session):
    actors = {"current": ActorUser(user_id=1)}

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_user() -> ActorUser:
        return actors["current"]

    def set_actor(user_id: int) -> None:
        actors["current"] = ActorUser(user_id=user_id)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_user
    with TestClient(app) as test_client:
        yield test_client, set_actor
    app.dependency_overrides.clear()


def _lead(db_session: Session, user_id: int = 1, **overrides) -> Lead:
    values = {"user_id": user_id, "full_name": "Maria Lima", "email": "maria@example.com"}
    values.update(overrides)
    lead = Lead(**values)
    db_session.add(lead)
    db_session.commit()
    return lead


def test_stage_config_defaults_and_replace_via_api(client) -> None:
    test_client, _ = client

    defaults = test_client.get("/api/crm/stages/config")
    assert defaults.status_code == 200
    assert [item["stageId"] for item in defaults.json()][:2] == ["initial_contact", "qualification"]
    assert defaults.json()[5]["isArchive"] is True

    replaced = test_client.put(
        "/api/crm/stages/config",
        json={
            "stages": [
                {"id": "novo", "name": "Novo", "color": "#111111", "position": 0, "isDefault": True},
                {"stageId": "fechado", "name": "Fechado", "position": 1, "isArchive": True},
            ]
        },
    )
    assert replaced.status_code == 200
    assert [item["stageId"] for item in replaced.json()] == ["novo", "fechado"]
    assert replaced.json()[1]["color"] is None

    listed = test_client.get("/api/crm/stages/config")
    assert [item["name"] for item in listed.json()] == ["Novo", "Fechado"]

    board = test_client.get("/api/crm/stages")
    assert [bucket["id"] for bucket in board.json()] == ["novo", "fechado"]


def test_stage_config_replace_rejects_missing_name(client) -> None:
    test_client, _ = client

    response = test_client.put(
        "/api/crm/stages/config",
        json={"stages": [{"stageId": "novo", "position": 0}]},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "validation failed"
    assert any(error["path"].endswith("name") for error in body["errors"])


def test_owner_moves_lead_and_activity_is_recorded(client, db_session: Session) -> None:
    test_client, _ = client
    lead = _lead(db_session, stage="initial_contact")

    response = test_client.patch(f"/api/crm/leads/{lead.id}", json={"stageId": "proposal"})

    assert response.status_code == 200
    assert response.json()["stage"] == "proposal"
    db_session.expire_all()
    assert db_session.get(Lead, lead.id).stage == "proposal"

    activities = db_session.scalars(
        select(ActivityLog).where(ActivityLog.entity_type == "lead", ActivityLog.action == "stage_changed")
    ).all()
    assert len(activities) == 1
    assert activities[0].entity_id == lead.id
    assert activities[0].user_id == 1
    assert activities[0].event_metadata == {"previousStage": "initial_contact", "newStage": "proposal"}

    lead_events = [event for event in events.published_events if event["event_type"].startswith("crm.")]
    assert [event["event_type"] for event in lead_events] == ["crm.lead.stage_changed"]
    assert lead_events[0]["payload"]["new_stage"] == "proposal"


def test_non_owner_cannot_move_lead(client, db_session: Session) -> None:
    test_client, set_actor = client
    lead = _lead(db_session, user_id=1, stage="qualification")
    set_actor(2)

    response = test_client.patch(f"/api/crm/leads/{lead.id}", json={"stageId": "closed"})

    assert response.status_code == 403
    assert response.json()["code"] == "crm_lead_stage_update_failed"
    assert response.json()["message"] == "Unauthorized to update this lead"
    db_session.expire_all()
    assert db_session.get(Lead, lead.id).stage == "qualification"
    assert db_session.scalars(select(ActivityLog)).all() == []


def test_missing_lead_returns_not_found(client) -> None:
    test_client, _ = client

    response = test_client.patch("/api/crm/leads/999", json={"stageId": "closed"})

    assert response.status_code == 404
    assert response.json()["message"] == "Lead not found"


def test_stage_update_requires_stage_id(client) -> None:
    test_client, _ = client

    response = test_client.patch("/api/crm/leads/1", json={})

    assert response.status_code == 400
    assert response.json()["errors"][0]["path"] == "stageId"


def test_lead_stage_accepts_unconfigured_value(client, db_session: Session) -> None:
    test_client, _ = client
    lead = _lead(db_session)

    response = test_client.patch(f"/api/crm/leads/{lead.id}", json={"stageId": "custom_stage"})

    assert response.status_code == 200
    board = test_client.get("/api/crm/stages").json()
    assert board[0]["count"] == 1
    assert board[0]["leads"][0]["stageId"] == "initial_contact"


def test_create_list_and_search_leads(client, db_session: Session) -> None:
    test_client, _ = client
    _lead(db_session, user_id=2, full_name="Outro Cliente")

    created = test_client.post(
        "/api/leads",
        json={"fullName": "Carlos Dias", "email": "carlos@example.com", "message": "Apartamento no centro"},
    )
    assert created.status_code == 201
    assert created.json()["stage"] == "initial_contact"
    test_client.post("/api/leads", json={"fullName": "Joana Reis", "email": "joana@example.com"})

    listed = test_client.get("/api/leads", params={"limit": 1})
    assert listed.status_code == 200
    assert listed.json()["total"] == 2
    assert listed.json()["totalPages"] == 2
    assert len(listed.json()["leads"]) == 1

    searched = test_client.get("/api/leads", params={"search": "centro"})
    assert searched.json()["total"] == 1
    assert searched.json()["leads"][0]["fullName"] == "Carlos Dias"

    created_logs = db_session.scalars(select(ActivityLog).where(ActivityLog.action == "created")).all()
    assert [log.event_metadata["source"] for log in created_logs] == ["direct", "direct"]


def test_create_lead_rejects_invalid_email(client) -> None:
    test_client, _ = client

    response = test_client.post("/api/leads", json={"fullName": "Carlos", "email": "not-an-email"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["path"] == "email"


def test_public_lead_capture(client, db_session: Session) -> None:
    test_client, _ = client

    captured = test_client.post(
        "/api/public/leads",
        json={"userId": 2, "fullName": "Visitante", "email": "v@example.com", "source": "website"},
    )
    assert captured.status_code == 201
    assert captured.json()["userId"] == 2

    missing = test_client.post(
        "/api/public/leads",
        json={"userId": 99, "fullName": "Visitante", "email": "v@example.com"},
    )
    assert missing.status_code == 404
    assert missing.json()["message"] == "Agent not found"


def test_clients_view_maps_leads(client, db_session: Session) -> None:
    test_client, _ = client
    _lead(db_session, full_name="Sem Telefone", stage="scheduled_visit")
    _lead(
        db_session,
        full_name="Com Mensagem",
        phone="11 99999-0000",
        message="Procuro casa com quintal grande perto de escolas",
        stage="legacy",
    )

    response = test_client.get("/api/clients")

    assert response.status_code == 200
    by_name = {item["name"]: item for item in response.json()}
    assert by_name["Sem Telefone"]["phone"] == "N/A"
    assert by_name["Sem Telefone"]["interest"] == "N/A"
    assert by_name["Sem Telefone"]["status"] == "Agendado"
    assert by_name["Com Mensagem"]["interest"] == "Procuro casa com quintal grand..."
    assert by_name["Com Mensagem"]["status"] == "Ativo"


def _stage_change_count(stage: str) -> float:
    return REGISTRY.get_sample_value("crm_lead_stage_changes_total", {"stage": stage}) or 0.0


def test_stage_update_rejects_oversized_stage_id(client, db_session: Session) -> None:
    test_client, _ = client
    lead = _lead(db_session)

    response = test_client.patch(f"/api/crm/leads/{lead.id}", json={"stageId": "x" * 65})

    assert response.status_code == 400
    assert response.json()["errors"][0]["path"] == "stageId"
    db_session.refresh(lead)
    assert lead.stage == "initial_contact"


def test_stage_config_replace_rejects_oversized_fields(client) -> None:
    test_client, _ = client

    response = test_client.put(
        "/api/crm/stages/config",
        json={"stages": [{"stageId": "novo", "name": "N" * 121, "color": "#" * 33, "position": 0}]},
    )

    assert response.status_code == 400
    paths = {error["path"] for error in response.json()["errors"]}
    assert paths == {"stages.0.name", "stages.0.color"}


def test_custom_stage_changes_share_one_metric_series(client, db_session: Session) -> None:
    test_client, _ = client
    lead = _lead(db_session)
    other_before = _stage_change_count("other")
    proposal_before = _stage_change_count("proposal")

    assert test_client.patch(f"/api/crm/leads/{lead.id}", json={"stageId": "negociacao_especial"}).status_code == 200
    assert test_client.patch(f"/api/crm/leads/{lead.id}", json={"stageId": "proposal"}).status_code == 200

    assert _stage_change_count("other") == other_before + 1
    assert _stage_change_count("proposal") == proposal_before + 1
    assert REGISTRY.get_sample_value("crm_lead_stage_changes_total", {"stage": "negociacao_especial"}) is None


@pytest.mark.parametrize("db_session", [True], indirect=True)
def test_lead_with_unknown_reference_is_rejected(client, db_session: Session) -> None:
    test_client, _ = client

    created = test_client.post(
        "/api/leads",
        json={"fullName": "X", "email": "x@example.com", "propertyId": 999},
    )
    assert created.status_code == 400
    assert created.json()["message"] == "Invalid lead reference"

    captured = test_client.post(
        "/api/public/leads",
        json={"userId": 2, "fullName": "Visitante", "email": "v@example.com", "assignedTo": 999},
    )
    assert captured.status_code == 400
    assert captured.json()["code"] == "crm_public_lead_capture_failed"

    assert db_session.scalars(select(Lead)).all() == []
    assert db_session.scalars(select(ActivityLog)).all() == []

    recovered = test_client.post("/api/leads", json={"fullName": "Y", "email": "y@example.com"})
    assert recovered.status_code == 201


def test_public_schedule_visit_creates_lead_and_appointment(client, db_session: Session) -> None:
    test_client, _ = client
    db_session.add(
        Property(
            id=7,
            user_id=1,
            title="Casa no Cambuí",
            address="Rua B, 20",
            price=Decimal("920000"),
            property_type="house",
        )
    )
    db_session.commit()

    response = test_client.post(
        "/api/public/schedule-visit",
        json={
            "fullName": "Paula Reis",
            "email": "paula@example.com",
            "phone": "19 98888-7777",
            "date": "2026-11-05",
            "timeSlot": "14:00",
            "visitType": "presencial",
            "propertyId": 7,
            "agentId": 1,
            "utmSource": "instagram",
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    lead = body["lead"]
    assert lead["userId"] == 1
    assert lead["propertyId"] == 7
    assert lead["stage"] == "scheduled_visit"
    assert lead["source"] == "instagram"
    assert lead["message"] == "Solicitação de visita presencial: 05/11/2026 às 14:00"
    assert lead["customFields"]["visitDate"] == "2026-11-05"
    assert lead["customFields"]["visitTime"] == "14:00"
    assert lead["customFields"]["type"] == "visit_request"

    activity = db_session.scalars(select(ActivityLog)).one()
    assert activity.action == "visit_scheduled"
    assert activity.event_metadata["timeSlot"] == "14:00"
    assert any(event["event_type"] == "crm.lead.visit_scheduled" for event in events.published_events)

    recent = test_client.get("/api/activities/recent").json()
    assert recent[0]["type"] == "appointment"
    assert recent[0]["name"] == "Paula Reis"
    assert recent[0]["description"] == "Visita agendada para Casa no Cambuí"


def test_public_schedule_visit_validation_and_missing_refs(client) -> None:
    test_client, _ = client
    payload = {
        "fullName": "Paula Reis",
        "email": "paula@example.com",
        "phone": "19 98888-7777",
        "date": "2026-11-05",
        "timeSlot": "14:00",
        "visitType": "virtual",
        "propertyId": 7,
        "agentId": 1,
    }

    missing_phone = test_client.post("/api/public/schedule-visit", json={**payload, "phone": ""})
    assert missing_phone.status_code == 400
    assert missing_phone.json()["errors"][0]["path"] == "phone"

    unknown_agent = test_client.post("/api/public/schedule-visit", json={**payload, "agentId": 99})
    assert unknown_agent.status_code == 404
    assert unknown_agent.json()["message"] == "Agent not found"

    unknown_property = test_client.post("/api/public/schedule-visit", json=payload)
    assert unknown_property.status_code == 404
    assert unknown_property.json()["code"] == "crm_public_visit_schedule_failed"
