"""Badge engine: metrics, progress and idempotent awarding.

The single place badge eligibility is decided. Any action that changes a
user's counts or points calls :func:`recompute_and_award` afterwards.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.db.models import (
    Answer,
    Badge,
    BadgeRequirementType,
    NotificationType,
    Profile,
    Question,
    Resource,
    UserBadge,
)
from studycircle.db.upsert import insert_ignore
from studycircle.notifications.service import dispatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserMetrics:
    points: int = 0
    questions_asked: int = 0
    answers_given: int = 0
    answers_accepted: int = 0
    resources_shared: int = 0

    def value_for(self, requirement_type: BadgeRequirementType | str) -> int:
        return getattr(self, BadgeRequirementType(requirement_type).value)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def progress(current: int, threshold: int) -> float:
    """Fraction of the way to a threshold, capped at 1.0."""
    if threshold <= 0:
        return 1.0
    return min(current / threshold, 1.0)


def eligible_badges(
    metrics: UserMetrics,
    badges: Iterable[Badge],
    earned_ids: set[uuid.UUID],
) -> list[Badge]:
    """Badges not yet earned whose metric has reached the threshold.

    Ordered by (requirement_value, name) so awards happen deterministically.
    """
    candidates = sorted(
        (b for b in badges if b.id not in earned_ids),
        key=lambda b: (b.requirement_value, b.name),
    )
    return [b for b in candidates if metrics.value_for(b.requirement_type) >= b.requirement_value]


async def _count(db: AsyncSession, stmt: Any) -> int:  # noqa: ANN401
    result = await db.execute(stmt)
    return result.scalar_one() or 0


async def compute_metrics(db: AsyncSession, user_id: uuid.UUID) -> UserMetrics:
    """Current totals for the four counted actions plus profile points."""
    points = await db.execute(select(Profile.points).where(Profile.user_id == user_id))
    return UserMetrics(
        points=points.scalar_one_or_none() or 0,
        questions_asked=await _count(
            db, select(func.count()).select_from(Question).where(Question.user_id == user_id)
        ),
        answers_given=await _count(db, select(func.count()).select_from(Answer).where(Answer.user_id == user_id)),
        answers_accepted=await _count(
            db,
            select(func.count())
            .select_from(Answer)
            .where(Answer.user_id == user_id, Answer.is_accepted.is_(True)),
        ),
        resources_shared=await _count(
            db, select(func.count()).select_from(Resource).where(Resource.user_id == user_id)
        ),
    )


async def earned_badge_ids(db: AsyncSession, user_id: uuid.UUID) -> set[uuid.UUID]:
    result = await db.execute(select(UserBadge.badge_id).where(UserBadge.user_id == user_id))
    return set(result.scalars().all())


async def award_badge(
    db: AsyncSession,
    user_id: uuid.UUID,
    badge: Badge,
    redis: Any | None = None,  # noqa: ANN401
) -> bool:
    """Award a badge to a user.

    Returns True if awarded, False if already earned. The insert is guarded
    by UNIQUE(user_id, badge_id), so concurrent recomputes award once.
    """
    written = await insert_ignore(
        db,
        UserBadge,
        {"user_id": user_id, "badge_id": badge.id},
        ["user_id", "badge_id"],
    )
    if not written:
        return False

    logger.info("Awarded badge %r to user %s", badge.name, user_id)
    await dispatch(
        db,
        NotificationType.POINTS_EARNED,
        user_id,
        title=f'Badge Earned: "{badge.name}"',
        message=badge.description,
        related_id=badge.id,
        redis=redis,
    )
    return True


async def recompute_and_award(
    db: AsyncSession,
    user_id: uuid.UUID,
    redis: Any | None = None,  # noqa: ANN401
) -> list[Badge]:
    """Award every badge the user now qualifies for. Returns the newly awarded badges.

    Re-running with unchanged counts awards nothing.
    """
    metrics = await compute_metrics(db, user_id)
    badges = (await db.execute(select(Badge))).scalars().all()
    earned = await earned_badge_ids(db, user_id)

    awarded = []
    for badge in eligible_badges(metrics, badges, earned):
        if await award_badge(db, user_id, badge, redis=redis):
            awarded.append(badge)
    return awarded


async def badge_progress(db: AsyncSession, user_id: uuid.UUID) -> list[dict[str, Any]]:
    """Every badge with the user's current value, progress and earned flag."""
    metrics = await compute_metrics(db, user_id)
    badges = (await db.execute(select(Badge).order_by(Badge.requirement_value, Badge.name))).scalars().all()
    earned = await earned_badge_ids(db, user_id)
    items = []
    for badge in badges:
        current = metrics.value_for(badge.requirement_type)
        items.append(
            {
                "badge": badge,
                "current": current,
                "progress": 1.0 if badge.id in earned else progress(current, badge.requirement_value),
                "earned": badge.id in earned,
            }
        )
    return items
