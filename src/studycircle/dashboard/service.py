"""Dashboard aggregation: platform totals and recent activity."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.db.models import Answer, PrivacyLevel, Profile, Question, StudyGroup

RECENT_QUESTIONS = 5
RECENT_GROUPS = 4


async def _total(db: AsyncSession, model: Any) -> int:  # noqa: ANN401
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def get_dashboard(db: AsyncSession, user_id: uuid.UUID) -> dict[str, Any]:
    """Totals, the newest questions and public groups, and the caller's points."""
    questions = await db.execute(
        select(Question, Profile.full_name)
        .outerjoin(Profile, Profile.user_id == Question.user_id)
        .order_by(Question.created_at.desc())
        .limit(RECENT_QUESTIONS)
    )
    groups = await db.execute(
        select(StudyGroup)
        .where(StudyGroup.privacy == PrivacyLevel.PUBLIC)
        .order_by(StudyGroup.created_at.desc())
        .limit(RECENT_GROUPS)
    )
    points = await db.execute(select(Profile.points).where(Profile.user_id == user_id))

    return {
        "stats": {
            "total_questions": await _total(db, Question),
            "total_answers": await _total(db, Answer),
            "total_groups": await _total(db, StudyGroup),
            "points": points.scalar_one_or_none() or 0,
        },
        "recent_questions": [
            {
                "id": q.id,
                "title": q.title,
                "difficulty": q.difficulty,
                "view_count": q.view_count,
                "is_resolved": q.is_resolved,
                "author_name": name or "Student",
                "created_at": q.created_at,
            }
            for q, name in questions.all()
        ],
        "recent_groups": list(groups.scalars().all()),
    }
