from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..core.chat import Services, get_services, run_chat
from ..core.recovery.errors import TurnAbortedError
from ..types import ChatRequest, ChatResponse, FeedbackRequest, FeedbackResponse

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat_endpoint(request: ChatRequest, services: Services = Depends(get_services)):
    """One conversational turn with the W Chain assistant."""
    try:
        return await run_chat(request, services)
    except TurnAbortedError as e:
        # Rate limit / quota / credential problems carry their own status.
        return JSONResponse(status_code=e.status, content={"error": e.message, "reason": e.reason})


@router.post("/chat/feedback", response_model=FeedbackResponse)
async def feedback_endpoint(request: FeedbackRequest, services: Services = Depends(get_services)):
    conversation = await services.conversations.get_conversation(request.conversation_id, include_messages=False)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    updated = await services.orchestrator.submit_feedback(
        request.conversation_id,
        request.role,
        request.content,
        request.feedback,
    )
    return FeedbackResponse(updated=updated)
