import json
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from prolance.auth.models import User
from prolance.database import get_db
from prolance.messaging.crud import (
    get_conversation, get_user_conversations, create_message, get_messages, count_unread,
    mark_messages_read, get_message, delete_message, message_event
)
from prolance.messaging.models import Conversation
from prolance.messaging.schemas import (
    MessageCreate, MessageResponse, MarkReadRequest, ConversationResponse, ConversationDetailResponse
)
from prolance.notifications.handlers import dispatch_events
from prolance.projects.crud import get_project
from prolance.realtime import manager, conversation_room, project_room, user_room
from prolance.security import get_current_user, resolve_user_from_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def get_participant_conversation(db: Session, conversation_id: int, user: User) -> Conversation:
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if not conversation.has_participant(user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a participant in this conversation"
        )
    return conversation


def conversation_payload(db: Session, conversation: Conversation, user_id: int) -> ConversationResponse:
    payload = ConversationResponse.model_validate(conversation)
    payload.unread_count = count_unread(db, conversation.id, user_id)
    return payload


@router.get("/api/chat/conversations", response_model=list[ConversationResponse])
def get_conversations(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [
        conversation_payload(db, conversation, current_user.id)
        for conversation in get_user_conversations(db, current_user.id)
    ]


@router.get("/api/chat/conversations/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation_detail(
    conversation_id: int,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = get_participant_conversation(db, conversation_id, current_user)
    messages = get_messages(db, conversation_id, limit, offset)
    return ConversationDetailResponse(
        conversation=conversation_payload(db, conversation, current_user.id),
        messages=list(reversed(messages)),
    )


@router.post("/api/chat/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    request: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = get_participant_conversation(db, request.conversation_id, current_user)
    content = request.content.strip()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message content cannot be empty")
    message = create_message(db, conversation, current_user.id, content)
    dispatch_events(db, [message_event(message, conversation.other_participant(current_user.id))])
    return message


@router.post("/api/chat/read")
def mark_read(
    request: MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    get_participant_conversation(db, request.conversation_id, current_user)
    updated = mark_messages_read(db, request.conversation_id, current_user.id)
    manager.emit(conversation_room(request.conversation_id), "messages-read", {
        "conversation_id": request.conversation_id,
        "user_id": current_user.id,
    })
    return {"message": "Messages marked as read", "updated": updated}


@router.delete("/api/chat/messages/{message_id}")
def remove_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    message = get_message(db, message_id)
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if message.sender_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own messages")
    conversation_id = message.conversation_id
    delete_message(db, message)
    manager.emit(conversation_room(conversation_id), "message-deleted", {
        "conversation_id": conversation_id,
        "message_id": message_id,
    })
    return {"message": "Message deleted successfully"}


async def send_error(websocket: WebSocket, message: str):
    await websocket.send_text(json.dumps({"event": "error", "data": {"message": message}}))


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, db: Session = Depends(get_db)):
    token = websocket.query_params.get("token")
    try:
        user = resolve_user_from_token(db, token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = user.id
    await manager.connect(websocket, user_id)
    logger.info("User %s connected to realtime channel", user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except ValueError:
                await send_error(websocket, "Invalid frame")
                continue
            event = frame.get("event")
            data = frame.get("data") or {}
            db.expire_all()

            if event in ("join-conversation", "leave-conversation", "send-message", "typing", "mark-read"):
                conversation = get_conversation(db, data.get("conversation_id") or 0)
                if not conversation or not conversation.has_participant(user_id):
                    await send_error(websocket, "Conversation not found")
                    continue
                room = conversation_room(conversation.id)

                if event == "join-conversation":
                    manager.join(websocket, room)
                    await websocket.send_text(json.dumps({
                        "event": "joined-conversation", "data": {"conversation_id": conversation.id}
                    }))
                elif event == "leave-conversation":
                    manager.leave(websocket, room)
                elif event == "send-message":
                    content = (data.get("content") or "").strip()
                    if not content or len(content) > 5000:
                        await send_error(websocket, "Message content must be 1-5000 characters")
                        continue
                    message = create_message(db, conversation, user_id, content)
                    payload = message_event(message).data
                    await manager.broadcast(room, "new-message", payload)
                    await manager.broadcast(
                        user_room(conversation.other_participant(user_id)), "message-notification", payload
                    )
                elif event == "typing":
                    await manager.broadcast(room, "user-typing", {
                        "conversation_id": conversation.id,
                        "user_id": user_id,
                        "is_typing": bool(data.get("is_typing", True)),
                    }, exclude=websocket)
                elif event == "mark-read":
                    mark_messages_read(db, conversation.id, user_id)
                    await manager.broadcast(room, "messages-read", {
                        "conversation_id": conversation.id, "user_id": user_id,
                    })

            elif event in ("join-project", "leave-project"):
                project = get_project(db, data.get("project_id") or 0)
                if not project or not project.is_participant(user_id):
                    await send_error(websocket, "Project not found")
                    continue
                if event == "join-project":
                    manager.join(websocket, project_room(project.id))
                    await websocket.send_text(json.dumps({
                        "event": "joined-project", "data": {"project_id": project.id}
                    }))
                else:
                    manager.leave(websocket, project_room(project.id))
            else:
                await send_error(websocket, f"Unknown event: {event}")
    except WebSocketDisconnect:
        logger.info("User %s disconnected from realtime channel", user_id)
    finally:
        manager.disconnect(websocket)
