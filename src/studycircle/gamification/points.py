"""Point grants with idempotency."""

from __future__ import annotations

import enum
import logging
import uuid
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.config import get_settings
from studycircle.db.models import PointsLedger, Profile
from studycircle.db.upsert import insert_ignore
from studycircle.gamification.engine import recompute_and_award

logger = logging.getLogger(__name__)


class PointReason(str, enum.Enum):
    QUESTION_ASKED = "question_asked"
    ANSWER_GIVEN = "answer_given"
    ANSWER_ACCEPTED = "answer_accepted"
    RESOURCE_SHARED = "resource_shared"


def points_for(reason: PointReason) -> int:
    settings = get_settings()
    return {
        PointReason.QUESTION_ASKED: settings.points_question_asked,
        PointReason.ANSWER_GIVEN: settings.points_answer_given,
        PointReason.ANSWER_ACCEPTED: settings.points_answer_accepted,
        PointReason.RESOURCE_SHARED: settings.points_resource_shared,
    }[reason]


async def grant_points(
    db: AsyncSession,
    user_id: uuid.UUID,
    reason: PointReason,
    source_id: uuid.UUID,
    redis: Any | None = None,  # noqa: ANN401
) -> bool:
    """Grant points for an action. Returns True if granted, False if duplicate.

    After granting:
    1. Insert into points_ledger (keyed ``<reason>:<source_id>``)
    2. Add the amount to profiles.points atomically
    3. Recompute badges, so point thresholds fire
    """
    amount = points_for(reason)
    written = await insert_ignore(
        db,
        PointsLedger,
        {
            "user_id": user_id,
            "amount": amount,
            "reason": reason.value,
            "idempotency_key": f"{reason.value}:{source_id}",
        },
        ["idempotency_key"],
    )
    if not written:
        return False

    await db.execute(
        update(Profile)
        .where(Profile.user_id == user_id)
        .values(points=Profile.points + amount)
        .execution_options(synchronize_session=False)
    )
    logger.info("Granted %d points to user %s for %s", amount, user_id, reason.value)

    await recompute_and_award(db, user_id, redis=redis)
    return True
