"""
Role-aware view restriction. Pure functions, no I/O.
Privileged viewers see everything; members only their own records.
"""
from __future__ import annotations

import logging
from typing import Protocol, Sequence, TypeVar

from app.access.models import ViewerContext
from app.core.exceptions import Forbidden

logger = logging.getLogger(__name__)


class OwnedRecord(Protocol):
    discord_id: str


R = TypeVar("R", bound=OwnedRecord)


def can_view(record: OwnedRecord, viewer: ViewerContext) -> bool:
    if viewer.is_privileged:
        return True
    return bool(viewer.external_id) and record.discord_id == viewer.external_id


def filter_for_viewer(records: Sequence[R], viewer: ViewerContext) -> list[R]:
    """Unchanged for privileged viewers; otherwise only records owned by the viewer."""
    if viewer.is_privileged:
        return list(records)
    visible = [r for r in records if can_view(r, viewer)]
    logger.debug(
        "records_filtered_for_viewer",
        extra={"discord_id": viewer.external_id, "count": len(visible)},
    )
    return visible


def require_privileged(viewer: ViewerContext, action: str = "modify payments") -> None:
    if not viewer.is_privileged:
        logger.warning(
            "forbidden_action",
            extra={"discord_id": viewer.external_id, "actor": viewer.label, "action": action},
        )
        raise Forbidden(f"Forbidden: Only support staff can {action}")
