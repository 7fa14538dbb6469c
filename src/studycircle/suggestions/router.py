"""Study suggestion proxy: /api/v1/suggestions."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from studycircle.access.policies import Actor
from studycircle.auth.dependencies import get_current_actor
from studycircle.errors import UpstreamFailure
from studycircle.suggestions.client import SuggestionClient, get_suggestion_client, parse_suggestion
from studycircle.suggestions.prompts import build_prompt
from studycircle.suggestions.schemas import SuggestionRequest, SuggestionResponse

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Suggestions"])


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.options("/suggestions")
async def suggestions_preflight() -> Response:
    return Response(status_code=200)


@router.post("/suggestions", response_model=SuggestionResponse)
async def suggest(
    body: SuggestionRequest,
    actor: Actor = Depends(get_current_actor),
    client: SuggestionClient = Depends(get_suggestion_client),
):
    """Ask the completion model for a question improvement, hints or a study plan."""
    try:
        prompt = build_prompt(body.type, body.content, body.subject)
    except ValueError as e:
        return _failure(400, str(e))

    try:
        text = await client.complete(prompt)
    except UpstreamFailure as e:
        logger.warning("suggestion_failed", user_id=str(actor.user_id), type=body.type, error=e.message)
        return _failure(e.status_code, e.message)

    return SuggestionResponse(suggestion=parse_suggestion(text))
