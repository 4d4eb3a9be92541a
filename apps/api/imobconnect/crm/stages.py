"""Default CRM pipeline.

Both the stage-config listing and the kanban board derive their fallback
shapes from ``DEFAULT_STAGES`` so the two views cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


UNASSIGNED_STAGE_ID = "unassigned"
ORPHAN_POLICY_UNASSIGNED = "unassigned"
STAGE_ID_MAX_LENGTH = 64
OTHER_STAGE_LABEL = "other"
VISIT_STAGE_ID = "scheduled_visit"


@dataclass(frozen=True)
class StageDefinition:
    stage_id: str
    name: str
    color: str
    is_default: bool = False
    is_archive: bool = False


DEFAULT_STAGES: tuple[StageDefinition, ...] = (
    StageDefinition("initial_contact", "Contato Inicial", "#4F46E5", is_default=True),
    StageDefinition("qualification", "Qualificação", "#8B5CF6", is_default=True),
    StageDefinition("scheduled_visit", "Visita Agendada", "#10B981", is_default=True),
    StageDefinition("proposal", "Proposta", "#F59E0B", is_default=True),
    StageDefinition("documentation", "Documentação", "#EF4444", is_default=True),
    StageDefinition("closed", "Fechado", "#6B7280", is_archive=True),
)

DEFAULT_STAGE_IDS = frozenset(stage.stage_id for stage in DEFAULT_STAGES)

CLIENT_STATUS_BY_STAGE = {
    "initial_contact": "Novo",
    "qualification": "Em Análise",
    "scheduled_visit": "Agendado",
    "proposal": "Proposta",
    "documentation": "Documentação",
    "closed": "Fechado",
}


def default_stage_configs(user_id: int) -> list[dict[str, Any]]:
    return [
        {
            "id": position + 1,
            "user_id": user_id,
            "stage_id": stage.stage_id,
            "name": stage.name,
            "color": stage.color,
            "position": position,
            "is_default": stage.is_default,
            "is_archive": stage.is_archive,
        }
        for position, stage in enumerate(DEFAULT_STAGES)
    ]


def default_board_buckets() -> list[dict[str, Any]]:
    return [
        {"id": stage.stage_id, "name": stage.name, "color": stage.color, "count": 0, "leads": []}
        for stage in DEFAULT_STAGES
    ]


def client_status_for_stage(stage: str) -> str:
    return CLIENT_STATUS_BY_STAGE.get(stage, "Ativo")


def stage_metric_label(stage: str) -> str:
    """Metric label for a stage; custom stage ids share one series."""
    return stage if stage in DEFAULT_STAGE_IDS else OTHER_STAGE_LABEL
