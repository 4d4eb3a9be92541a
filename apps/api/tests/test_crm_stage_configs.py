from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from imobconnect import models  # noqa: F401
from imobconnect.core.auth import ActorUser
from imobconnect.core.database import Base
from imobconnect.crm.models import CrmStageConfig
from imobconnect.crm.schemas import StageConfigInput
from imobconnect.crm.service import StageConfigService
from imobconnect.crm.stages import DEFAULT_STAGES


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
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _pipeline() -> list[StageConfigInput]:
    return [
        StageConfigInput(stage_id="novo", name="Novo", color="#111111", position=0, is_default=True),
        StageConfigInput(stage_id="visita", name="Visita", color="#222222", position=1),
        StageConfigInput(stage_id="fechado", name="Fechado", color="#333333", position=2, is_archive=True),
    ]


def test_defaults_returned_when_user_has_no_configs(db_session: Session) -> None:
    configs = StageConfigService().get_stage_configs(db_session, 7)

    assert [item.stage_id for item in configs] == [stage.stage_id for stage in DEFAULT_STAGES]
    assert [item.position for item in configs] == [0, 1, 2, 3, 4, 5]
    assert [item.id for item in configs] == [1, 2, 3, 4, 5, 6]
    assert all(item.user_id == 7 for item in configs)
    assert all(item.is_default for item in configs[:5])
    assert configs[5].stage_id == "closed"
    assert configs[5].is_archive is True
    assert configs[5].is_default is False
    assert configs[0].name == "Contato Inicial"
    assert configs[0].color == "#4F46E5"
    assert db_session.scalars(select(CrmStageConfig)).all() == []


def test_replace_round_trip_preserves_fields_and_order(db_session: Session) -> None:
    service = StageConfigService()
    actor = ActorUser(user_id=3)

    service.replace_stage_configs(db_session, actor, list(reversed(_pipeline())))
    configs = service.get_stage_configs(db_session, 3)

    assert [(item.stage_id, item.name, item.position, item.color) for item in configs] == [
        ("novo", "Novo", 0, "#111111"),
        ("visita", "Visita", 1, "#222222"),
        ("fechado", "Fechado", 2, "#333333"),
    ]
    assert configs[0].is_default is True
    assert configs[2].is_archive is True


def test_replace_removes_previous_rows(db_session: Session) -> None:
    service = StageConfigService()
    actor = ActorUser(user_id=3)
    service.replace_stage_configs(db_session, actor, _pipeline())

    service.replace_stage_configs(
        db_session,
        actor,
        [StageConfigInput(stage_id="unico", name="Único", color="#000000", position=0)],
    )

    rows = db_session.scalars(select(CrmStageConfig).where(CrmStageConfig.user_id == 3)).all()
    assert [row.stage_id for row in rows] == ["unico"]


def test_replace_does_not_touch_other_users(db_session: Session) -> None:
    service = StageConfigService()
    service.replace_stage_configs(db_session, ActorUser(user_id=3), _pipeline())
    service.replace_stage_configs(
        db_session,
        ActorUser(user_id=4),
        [StageConfigInput(stage_id="outro", name="Outro", position=0)],
    )

    assert len(service.get_stage_configs(db_session, 3)) == 3
    assert [item.stage_id for item in service.get_stage_configs(db_session, 4)] == ["outro"]


def test_failed_replace_rolls_back_and_keeps_previous_configs(db_session: Session) -> None:
    service = StageConfigService()
    actor = ActorUser(user_id=3)
    service.replace_stage_configs(db_session, actor, _pipeline())

    broken = [
        StageConfigInput(stage_id="ok", name="Ok", position=0),
        StageConfigInput.model_construct(
            stage_id="broken",
            name=None,
            color=None,
            position=1,
            is_default=False,
            is_archive=False,
        ),
    ]
    with pytest.raises(HTTPException) as exc_info:
        service.replace_stage_configs(db_session, actor, broken)

    assert exc_info.value.status_code == 400
    configs = service.get_stage_configs(db_session, 3)
    assert [item.stage_id for item in configs] == ["novo", "visita", "fechado"]


def test_positions_are_stored_verbatim(db_session: Session) -> None:
    service = StageConfigService()
    actor = ActorUser(user_id=5)

    service.replace_stage_configs(
        db_session,
        actor,
        [
            StageConfigInput(stage_id="a", name="A", position=4),
            StageConfigInput(stage_id="b", name="B", position=4),
            StageConfigInput(stage_id="c", name="C", position=9),
        ],
    )

    configs = service.get_stage_configs(db_session, 5)
    assert [item.position for item in configs] == [4, 4, 9]
    assert configs[2].stage_id == "c"
