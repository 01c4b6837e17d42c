"""Token-gated AI workflows

Each route charges its service through require_tokens before forwarding to
the AI microservice. The charge is committed first; the downstream call runs
outside any wallet lock.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
import logging

from app.api.deps import get_current_user_id
from app.schemas.interview import CreateInterviewRequest, CreateVoiceInterviewRequest, RAGRequest
from app.services.ai_client import AIServiceClient, AIServiceError
from app.services.charge_gate import ServiceCharge, require_tokens

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Interviews"])


def get_ai_client(request: Request) -> AIServiceClient:
    return request.app.state.ai_client


def _downstream_error(action: str, exc: AIServiceError) -> HTTPException:
    logger.error(f"{action} failed after charge: {exc.message} ({exc.status_code})")
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": f"{action} Failed", "message": exc.message},
    )


@router.post("/interview/create", status_code=status.HTTP_201_CREATED)
async def create_interview(
    request: CreateInterviewRequest,
    user_id: str = Depends(get_current_user_id),
    charge: ServiceCharge = Depends(require_tokens("text_interview")),
    ai_client: AIServiceClient = Depends(get_ai_client),
):
    """Create a text interview session (charges text_interview)"""
    outcome = await charge()

    payload = request.model_dump(exclude_none=True)
    payload["user_id"] = user_id

    try:
        data = await ai_client.create_interview(payload)
    except AIServiceError as e:
        raise _downstream_error("Create Interview", e)

    return {"data": data, "tokens_charged": outcome.cost, "balance": outcome.new_balance}


@router.post("/voice-interview/create", status_code=status.HTTP_201_CREATED)
async def create_voice_interview(
    request: CreateVoiceInterviewRequest,
    user_id: str = Depends(get_current_user_id),
    charge: ServiceCharge = Depends(require_tokens("voice_interview")),
    ai_client: AIServiceClient = Depends(get_ai_client),
):
    """Create a voice interview session (charges voice_interview)"""
    outcome = await charge()

    payload = request.model_dump(exclude_none=True)
    payload["user_id"] = user_id

    try:
        data = await ai_client.create_voice_interview(payload)
    except AIServiceError as e:
        raise _downstream_error("Create Voice Interview", e)

    return {"data": data, "tokens_charged": outcome.cost, "balance": outcome.new_balance}


@router.post("/rag")
async def rag_query(
    request: RAGRequest,
    user_id: str = Depends(get_current_user_id),
    charge: ServiceCharge = Depends(require_tokens("rag_query")),
    ai_client: AIServiceClient = Depends(get_ai_client),
):
    """Answer a question with the RAG pipeline (charges rag_query)"""
    outcome = await charge()

    try:
        data = await ai_client.query_rag(request.message, user_id)
    except AIServiceError as e:
        raise _downstream_error("RAG Query", e)

    return {"data": data, "tokens_charged": outcome.cost, "balance": outcome.new_balance}
