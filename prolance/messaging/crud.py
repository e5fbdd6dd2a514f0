from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from prolance.events import DomainEvent
from prolance.messaging.models import Conversation, Message, MessageType

PREVIEW_LENGTH = 100


def get_conversation(db: Session, conversation_id: int):
    return db.query(Conversation).filter(Conversation.id == conversation_id).first()


def get_conversation_by_application(db: Session, application_id: int):
    return db.query(Conversation).filter(Conversation.application_id == application_id).first()


def get_project_conversation(db: Session, project_id: int, application_id: Optional[int] = None):
    if application_id:
        conversation = get_conversation_by_application(db, application_id)
        if conversation:
            return conversation
    return (
        db.query(Conversation)
        .filter(Conversation.project_id == project_id)
        .order_by(Conversation.id.desc())
        .first()
    )


def get_or_create_conversation(db: Session, application_id: int, project_id: int, freelancer_id: int, client_id: int):
    """Return the conversation of an application, staging a new one if needed.

    The unique application_id makes a racing second insert fail on commit.
    """
    conversation = get_conversation_by_application(db, application_id)
    if conversation:
        return conversation, False
    conversation = Conversation(
        application_id=application_id,
        project_id=project_id,
        freelancer_id=freelancer_id,
        client_id=client_id,
    )
    db.add(conversation)
    db.flush()
    return conversation, True


def get_user_conversations(db: Session, user_id: int):
    return (
        db.query(Conversation)
        .filter(or_(Conversation.freelancer_id == user_id, Conversation.client_id == user_id))
        .order_by(Conversation.last_message_at.desc().nullslast(), Conversation.id.desc())
        .all()
    )


def _touch_conversation(conversation: Conversation, message: Message):
    conversation.last_message_at = datetime.utcnow()
    conversation.last_message_preview = message.content[:PREVIEW_LENGTH]
    conversation.last_message_sender_id = message.sender_id


def add_message(db: Session, conversation: Conversation, sender_id: Optional[int], content: str,
                message_type: MessageType = MessageType.USER):
    """Stage a message on the session without committing it."""
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
    )
    db.add(message)
    _touch_conversation(conversation, message)
    db.flush()
    return message


def add_system_message(db: Session, conversation: Conversation, content: str):
    return add_message(db, conversation, None, content, MessageType.SYSTEM)


def message_event(message: Message, recipient_id: Optional[int] = None) -> DomainEvent:
    return DomainEvent("message.created", {
        "conversation_id": message.conversation_id,
        "recipient_id": recipient_id,
        "message": {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "sender_id": message.sender_id,
            "content": message.content,
            "message_type": message.message_type.value,
            "created_at": (message.created_at or datetime.utcnow()).isoformat(),
        },
    })


def create_message(db: Session, conversation: Conversation, sender_id: int, content: str):
    message = add_message(db, conversation, sender_id, content)
    db.commit()
    db.refresh(message)
    return message


def get_messages(db: Session, conversation_id: int, limit: int = 50, offset: int = 0):
    return db.query(Message).filter(
        Message.conversation_id == conversation_id
    ).order_by(Message.created_at.desc(), Message.id.desc()).offset(offset).limit(limit).all()


def count_unread(db: Session, conversation_id: int, user_id: int) -> int:
    return db.query(Message).filter(
        Message.conversation_id == conversation_id,
        or_(Message.sender_id != user_id, Message.sender_id.is_(None)),
        Message.is_read == False
    ).count()


def mark_messages_read(db: Session, conversation_id: int, user_id: int) -> int:
    updated = db.query(Message).filter(
        Message.conversation_id == conversation_id,
        or_(Message.sender_id != user_id, Message.sender_id.is_(None)),
        Message.is_read == False
    ).update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    db.commit()
    return updated


def get_message(db: Session, message_id: int):
    return db.query(Message).filter(Message.id == message_id).first()


def delete_message(db: Session, message: Message):
    db.delete(message)
    db.commit()
