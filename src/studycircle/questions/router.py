"""Question and answer endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor
from studycircle.database import get_session
from studycircle.questions.schemas import (
    AnswerCreateRequest,
    AnswerResponse,
    AnswerUpdateRequest,
    CounterResponse,
    QuestionCreateRequest,
    QuestionResponse,
    QuestionUpdateRequest,
    VoteRequest,
    VoteResponse,
)
from studycircle.questions.service import (
    QuestionFilter,
    accept_answer,
    count_answers,
    create_answer,
    create_question,
    get_question,
    list_answers,
    list_questions,
    record_view,
    update_answer,
    update_question,
    upvote_question,
    vote_answer,
)
from studycircle.redis_client import get_redis_dep

router = APIRouter(prefix="/api/v1", tags=["Questions"])


def _question_response(question, answer_count: int) -> QuestionResponse:
    response = QuestionResponse.model_validate(question)
    response.answer_count = answer_count
    return response


# ── Questions ──


@router.get("/questions", response_model=list[QuestionResponse])
async def questions_index(
    filter: QuestionFilter = Query(QuestionFilter.ALL),  # noqa: A002
    subject_id: uuid.UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    """List questions, newest first."""
    rows = await list_questions(db, filter, subject_id, limit, offset)
    return [_question_response(q, count) for q, count in rows]


@router.post("/questions", response_model=QuestionResponse, status_code=201)
async def ask_question(
    body: QuestionCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    question = await create_question(
        db,
        actor,
        title=body.title,
        content=body.content,
        subject_id=body.subject_id,
        difficulty=body.difficulty,
        grade_level=body.grade_level,
        redis=redis,
    )
    await db.commit()
    return _question_response(question, 0)


@router.get("/questions/{question_id}", response_model=QuestionResponse)
async def question_detail(question_id: uuid.UUID, db: AsyncSession = Depends(get_session)):
    question = await get_question(db, question_id)
    return _question_response(question, await count_answers(db, question_id))


@router.patch("/questions/{question_id}", response_model=QuestionResponse)
async def edit_question(
    question_id: uuid.UUID,
    body: QuestionUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Edit your own question."""
    question = await update_question(db, actor, question_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return _question_response(question, await count_answers(db, question_id))


@router.post("/questions/{question_id}/view", response_model=CounterResponse)
async def view_question(question_id: uuid.UUID, db: AsyncSession = Depends(get_session)):
    value = await record_view(db, question_id)
    await db.commit()
    return CounterResponse(id=question_id, value=value)


@router.post("/questions/{question_id}/upvote", response_model=CounterResponse)
async def upvote(
    question_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    value = await upvote_question(db, actor, question_id)
    await db.commit()
    return CounterResponse(id=question_id, value=value)


# ── Answers ──


@router.get("/questions/{question_id}/answers", response_model=list[AnswerResponse])
async def answers_index(question_id: uuid.UUID, db: AsyncSession = Depends(get_session)):
    """Answers to a question, accepted first."""
    return [AnswerResponse.model_validate(a) for a in await list_answers(db, question_id)]


@router.post("/questions/{question_id}/answers", response_model=AnswerResponse, status_code=201)
async def post_answer(
    question_id: uuid.UUID,
    body: AnswerCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    answer = await create_answer(db, actor, question_id, body.content, redis=redis)
    await db.commit()
    return AnswerResponse.model_validate(answer)


@router.patch("/answers/{answer_id}", response_model=AnswerResponse)
async def edit_answer(
    answer_id: uuid.UUID,
    body: AnswerUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    answer = await update_answer(db, actor, answer_id, body.content)
    await db.commit()
    return AnswerResponse.model_validate(answer)


@router.post("/answers/{answer_id}/vote", response_model=VoteResponse)
async def vote(
    answer_id: uuid.UUID,
    body: VoteRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    upvotes, downvotes = await vote_answer(db, actor, answer_id, body.direction)
    await db.commit()
    return VoteResponse(id=answer_id, upvotes=upvotes, downvotes=downvotes)


@router.post("/answers/{answer_id}/accept", response_model=AnswerResponse)
async def accept(
    answer_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    """Accept an answer to your own question. Resolves the question."""
    answer = await accept_answer(db, actor, answer_id, redis=redis)
    await db.commit()
    return AnswerResponse.model_validate(answer)
