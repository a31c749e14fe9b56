from fastapi import APIRouter, Depends, HTTPException

from ..core.chat import Services, get_services
from ..types import Conversation, SessionClearedResponse

router = APIRouter()


@router.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(conversation_id: str, services: Services = Depends(get_services)):
    conversation = await services.conversations.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.delete("/sessions/{session_id}", response_model=SessionClearedResponse)
async def clear_session(session_id: str, services: Services = Depends(get_services)):
    """Forget every conversation of a session (the chat bot's /clear)."""
    removed = await services.orchestrator.clear_session(session_id)
    return SessionClearedResponse(session_id=session_id, conversations_removed=removed)
