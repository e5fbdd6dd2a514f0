from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from prolance.assist import client
from prolance.assist.client import AssistError, AssistUnavailable
from prolance.assist.schemas import (
    ImproveDescriptionRequest, ImproveDescriptionResponse, ConversationAssistRequest, SmartRepliesResponse,
    MessageTextRequest, ToneResponse, IntentResponse, SummaryResponse
)
from prolance.auth.models import User
from prolance.database import get_db
from prolance.errors import http_error
from prolance.messaging.crud import get_messages
from prolance.messaging.routes import get_participant_conversation
from prolance.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

SUMMARY_DEFAULT_LIMIT = 50


def run_assist(failure_message: str, task, *args):
    try:
        return task(*args)
    except AssistUnavailable as exc:
        raise http_error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))
    except AssistError as exc:
        raise http_error(status.HTTP_502_BAD_GATEWAY, failure_message, str(exc))


def require_text(value: str, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} is required")
    return text


def conversation_transcript(db: Session, conversation_id: int, user: User, limit: Optional[int]):
    """Oldest first, with each sender labelled relative to the caller."""
    conversation = get_participant_conversation(db, conversation_id, user)
    messages = list(reversed(get_messages(db, conversation_id, limit=limit)))
    if not messages:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conversation has no messages")
    transcript = []
    for message in messages:
        if message.sender_id is None:
            sender = "system"
        elif message.sender_id == user.id:
            sender = "me"
        else:
            sender = "other"
        transcript.append({"sender": sender, "content": message.content})
    return conversation, transcript


@router.post("/improve-description", response_model=ImproveDescriptionResponse)
def improve_description(request: ImproveDescriptionRequest, current_user: User = Depends(get_current_user)):
    description = require_text(request.description, "Description")
    improved = run_assist(
        "Failed to improve description. Please try again.",
        client.improve_description, description, request.title,
    )
    return ImproveDescriptionResponse(improved_description=improved)


@router.post("/smart-replies", response_model=SmartRepliesResponse)
def smart_replies(
    request: ConversationAssistRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation, transcript = conversation_transcript(db, request.conversation_id, current_user,
                                                       request.limit or client.REPLY_CONTEXT)
    user_role = "freelancer" if conversation.freelancer_id == current_user.id else "client"
    replies = run_assist("Failed to generate replies", client.smart_replies, transcript, user_role)
    return SmartRepliesResponse(replies=replies)


@router.post("/analyze-tone", response_model=ToneResponse)
def analyze_tone(request: MessageTextRequest, current_user: User = Depends(get_current_user)):
    message = require_text(request.message, "Message")
    return ToneResponse(analysis=run_assist("Failed to analyze tone", client.analyze_tone, message))


@router.post("/detect-intent", response_model=IntentResponse)
def detect_intent(request: MessageTextRequest, current_user: User = Depends(get_current_user)):
    message = require_text(request.message, "Message")
    return IntentResponse(intent=run_assist("Failed to detect intent", client.detect_intent, message))


@router.post("/summarize-conversation", response_model=SummaryResponse)
def summarize_conversation(
    request: ConversationAssistRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    _, transcript = conversation_transcript(db, request.conversation_id, current_user,
                                            request.limit or SUMMARY_DEFAULT_LIMIT)
    summary = run_assist("Failed to summarize conversation", client.summarize_conversation, transcript)
    logger.info("Summarized %s messages of conversation %s", len(transcript), request.conversation_id)
    return SummaryResponse(summary=summary, message_count=len(transcript))
