"""Questions, answers, voting and answer acceptance."""

from __future__ import annotations

import enum
import uuid
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor, Entity, Operation, enforce
from studycircle.db.models import Answer, DifficultyLevel, NotificationType, Question, Subject
from studycircle.errors import Conflict, Forbidden, NotFound, ValidationFailed
from studycircle.gamification.engine import recompute_and_award
from studycircle.gamification.points import PointReason, grant_points
from studycircle.notifications.service import dispatch

logger = structlog.get_logger()

QUESTION_UPDATABLE_FIELDS = ("title", "content", "subject_id", "difficulty", "grade_level")


class QuestionFilter(str, enum.Enum):
    ALL = "all"
    RESOLVED = "resolved"
    UNANSWERED = "unanswered"


class VoteDirection(str, enum.Enum):
    UP = "up"
    DOWN = "down"


def _require_text(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise ValidationFailed(field, f"{field} must not be empty")
    return value.strip()


async def _check_subject(db: AsyncSession, subject_id: uuid.UUID | None) -> None:
    if subject_id is not None and await db.get(Subject, subject_id) is None:
        raise ValidationFailed("subject_id", "Unknown subject")


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


async def create_question(
    db: AsyncSession,
    actor: Actor,
    title: str,
    content: str,
    subject_id: uuid.UUID | None = None,
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM,
    grade_level: str | None = None,
    redis: Any | None = None,  # noqa: ANN401
) -> Question:
    """Post a question, grant points and recompute the asker's badges."""
    title = _require_text("title", title)
    content = _require_text("content", content)
    enforce(actor, Entity.QUESTION, Operation.INSERT, {"user_id": actor.user_id})
    await _check_subject(db, subject_id)

    question = Question(
        user_id=actor.user_id,
        subject_id=subject_id,
        title=title,
        content=content,
        difficulty=difficulty,
        grade_level=grade_level,
    )
    db.add(question)
    await db.flush()
    logger.info("question_created", question_id=str(question.id), user_id=str(actor.user_id))

    await grant_points(db, actor.user_id, PointReason.QUESTION_ASKED, question.id, redis=redis)
    return question


async def get_question(db: AsyncSession, question_id: uuid.UUID) -> Question:
    question = await db.get(Question, question_id)
    if question is None:
        msg = "Question not found"
        raise NotFound(msg)
    return question


def _answer_counts():
    return (
        select(Answer.question_id, func.count(Answer.id).label("answer_count"))
        .group_by(Answer.question_id)
        .subquery()
    )


async def list_questions(
    db: AsyncSession,
    question_filter: QuestionFilter = QuestionFilter.ALL,
    subject_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[Question, int]]:
    """Newest first, each paired with its answer count."""
    counts = _answer_counts()
    answer_count = func.coalesce(counts.c.answer_count, 0)
    stmt = select(Question, answer_count).outerjoin(counts, counts.c.question_id == Question.id)

    if question_filter == QuestionFilter.RESOLVED:
        stmt = stmt.where(Question.is_resolved.is_(True))
    elif question_filter == QuestionFilter.UNANSWERED:
        stmt = stmt.where(answer_count == 0)
    if subject_id is not None:
        stmt = stmt.where(Question.subject_id == subject_id)

    stmt = stmt.order_by(Question.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return [(row[0], row[1]) for row in result.all()]


async def count_answers(db: AsyncSession, question_id: uuid.UUID) -> int:
    result = await db.execute(select(func.count()).select_from(Answer).where(Answer.question_id == question_id))
    return result.scalar_one()


async def update_question(
    db: AsyncSession,
    actor: Actor,
    question_id: uuid.UUID,
    changes: dict[str, Any],
) -> Question:
    """Edit a question. Only its author may; is_resolved only changes through acceptance."""
    question = await get_question(db, question_id)
    enforce(actor, Entity.QUESTION, Operation.UPDATE, question)

    if "title" in changes:
        changes["title"] = _require_text("title", changes["title"])
    if "content" in changes:
        changes["content"] = _require_text("content", changes["content"])
    if "subject_id" in changes:
        await _check_subject(db, changes["subject_id"])

    for field, value in changes.items():
        if field in QUESTION_UPDATABLE_FIELDS:
            setattr(question, field, value)
    await db.flush()
    return question


async def record_view(db: AsyncSession, question_id: uuid.UUID) -> int:
    """Atomically increment view_count. Returns the new value."""
    await get_question(db, question_id)
    await db.execute(
        update(Question)
        .where(Question.id == question_id)
        .values(view_count=Question.view_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(select(Question.view_count).where(Question.id == question_id))
    return result.scalar_one()


async def upvote_question(db: AsyncSession, actor: Actor, question_id: uuid.UUID) -> int:
    if not actor.is_authenticated:
        msg = "authentication required"
        raise Forbidden(msg)
    await get_question(db, question_id)
    await db.execute(
        update(Question)
        .where(Question.id == question_id)
        .values(upvotes=Question.upvotes + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(select(Question.upvotes).where(Question.id == question_id))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------


async def get_answer(db: AsyncSession, answer_id: uuid.UUID) -> Answer:
    answer = await db.get(Answer, answer_id)
    if answer is None:
        msg = "Answer not found"
        raise NotFound(msg)
    return answer


async def list_answers(db: AsyncSession, question_id: uuid.UUID) -> list[Answer]:
    """Accepted answer first, then by upvotes, then oldest first."""
    await get_question(db, question_id)
    result = await db.execute(
        select(Answer)
        .where(Answer.question_id == question_id)
        .order_by(Answer.is_accepted.desc(), Answer.upvotes.desc(), Answer.created_at.asc())
    )
    return list(result.scalars().all())


async def create_answer(
    db: AsyncSession,
    actor: Actor,
    question_id: uuid.UUID,
    content: str,
    redis: Any | None = None,  # noqa: ANN401
) -> Answer:
    """Answer a question.

    Notifies the question owner (unless they answered themselves), grants
    points and recomputes the answerer's badges.
    """
    content = _require_text("content", content)
    enforce(actor, Entity.ANSWER, Operation.INSERT, {"user_id": actor.user_id})
    question = await get_question(db, question_id)

    answer = Answer(question_id=question.id, user_id=actor.user_id, content=content)
    db.add(answer)
    await db.flush()
    logger.info("answer_created", answer_id=str(answer.id), question_id=str(question.id))

    if question.user_id != actor.user_id:
        await dispatch(
            db,
            NotificationType.QUESTION_ANSWERED,
            question.user_id,
            title="New answer to your question",
            message=f'Someone answered "{question.title}"',
            related_id=question.id,
            redis=redis,
        )

    await grant_points(db, actor.user_id, PointReason.ANSWER_GIVEN, answer.id, redis=redis)
    return answer


async def update_answer(db: AsyncSession, actor: Actor, answer_id: uuid.UUID, content: str) -> Answer:
    answer = await get_answer(db, answer_id)
    enforce(actor, Entity.ANSWER, Operation.UPDATE, answer)
    answer.content = _require_text("content", content)
    await db.flush()
    return answer


async def vote_answer(
    db: AsyncSession,
    actor: Actor,
    answer_id: uuid.UUID,
    direction: VoteDirection,
) -> tuple[int, int]:
    """Atomically count an up or down vote. Returns (upvotes, downvotes)."""
    if not actor.is_authenticated:
        msg = "authentication required"
        raise Forbidden(msg)
    await get_answer(db, answer_id)
    column = Answer.upvotes if direction == VoteDirection.UP else Answer.downvotes
    await db.execute(
        update(Answer)
        .where(Answer.id == answer_id)
        .values({column: column + 1})
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(select(Answer.upvotes, Answer.downvotes).where(Answer.id == answer_id))
    row = result.one()
    return row.upvotes, row.downvotes


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------


async def apply_acceptance(db: AsyncSession, question_id: uuid.UUID, answer_id: uuid.UUID) -> bool:
    """Mark ``answer_id`` the accepted answer of its question.

    Clears every other accepted answer of the question before setting the
    target, so at most one answer is accepted at any point. Then resolves
    the question if it is not already. Returns True when this call resolved
    the question.

    Runs inside the caller's transaction.
    """
    await db.execute(
        update(Answer)
        .where(Answer.question_id == question_id, Answer.id != answer_id, Answer.is_accepted.is_(True))
        .values(is_accepted=False)
        .execution_options(synchronize_session="fetch")
    )
    await db.execute(
        update(Answer)
        .where(Answer.id == answer_id)
        .values(is_accepted=True)
        .execution_options(synchronize_session="fetch")
    )
    result = await db.execute(
        update(Question)
        .where(Question.id == question_id, Question.is_resolved.is_(False))
        .values(is_resolved=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def accept_answer(
    db: AsyncSession,
    actor: Actor,
    answer_id: uuid.UUID,
    redis: Any | None = None,  # noqa: ANN401
) -> Answer:
    """Accept an answer on behalf of the question owner.

    Raises:
        NotFound: The answer does not exist.
        Forbidden: The actor does not own the question.
        Conflict: The question is already resolved.
    """
    answer = await get_answer(db, answer_id)
    result = await db.execute(
        select(Question)
        .where(Question.id == answer.question_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    question = result.scalar_one()

    if not actor.owns(question.user_id):
        msg = "Only the question owner can accept an answer"
        raise Forbidden(msg)
    if question.is_resolved:
        msg = "Question is already resolved"
        raise Conflict(msg)

    if not await apply_acceptance(db, question.id, answer.id):
        msg = "Question is already resolved"
        raise Conflict(msg)
    logger.info("answer_accepted", answer_id=str(answer.id), question_id=str(question.id))

    await dispatch(
        db,
        NotificationType.ANSWER_ACCEPTED,
        answer.user_id,
        title="Your answer was accepted",
        message=f'Your answer to "{question.title}" was marked as accepted',
        related_id=question.id,
        redis=redis,
    )

    if not await grant_points(db, answer.user_id, PointReason.ANSWER_ACCEPTED, answer.id, redis=redis):
        await recompute_and_award(db, answer.user_id, redis=redis)

    await db.refresh(question)
    await db.refresh(answer)
    return answer
