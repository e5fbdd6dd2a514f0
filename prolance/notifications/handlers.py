"""Delivery of domain events after the primary transaction has committed.

Each handler turns one event into stored notifications and room-scoped socket
pushes. Delivery is best effort: a failing handler is logged and skipped, it
never reaches back into the transition that produced the event.
"""
from typing import Callable, Dict, Iterable, Optional
import logging

from sqlalchemy.orm import Session

from prolance.events import DomainEvent, publish_event
from prolance.notifications.crud import create_notification
from prolance.notifications.schemas import NotificationResponse
from prolance.realtime import manager, user_room, project_room, conversation_room

logger = logging.getLogger(__name__)


def _money(amount) -> str:
    return f"₹{amount:,.0f}"


def notify(
    db: Session,
    user_id: int,
    type: str,
    title: str,
    message: str,
    project_id: Optional[int] = None,
    data: dict = None,
):
    notification = create_notification(db, user_id, type, title, message, project_id=project_id, data=data)
    manager.emit(
        user_room(user_id),
        "new-notification",
        NotificationResponse.model_validate(notification).model_dump(mode="json"),
    )
    return notification


def on_application_submitted(db: Session, data: dict):
    notify(
        db, data["client_id"], "new_application", "New Application",
        f"{data['freelancer_name']} applied to \"{data['project_title']}\"",
        project_id=data["project_id"],
        data={"application_id": data["application_id"]},
    )


def on_application_accepted(db: Session, data: dict):
    notify(
        db, data["freelancer_id"], "application_accepted", "Application Accepted",
        f"Your application for \"{data['project_title']}\" was accepted. You can now chat with the client.",
        project_id=data["project_id"],
        data={"application_id": data["application_id"], "conversation_id": data["conversation_id"]},
    )


def on_application_rejected(db: Session, data: dict):
    notify(
        db, data["freelancer_id"], "application_rejected", "Application Update",
        f"Your application for \"{data['project_title']}\" was not selected.",
        project_id=data["project_id"],
        data={"application_id": data["application_id"]},
    )


def on_contract_proposed(db: Session, data: dict):
    notify(
        db, data["client_id"], "contract_proposed", "New Contract Proposal",
        f"{data['freelancer_name']} proposed a contract for \"{data['project_title']}\"",
        project_id=data["project_id"],
        data={"contract_id": data["contract_id"], "conversation_id": data["conversation_id"]},
    )
    manager.emit(conversation_room(data["conversation_id"]), "contract-proposed", data)


def _on_contract_responded(db: Session, data: dict, accepted: bool):
    if accepted:
        type, title, verb = "contract_accepted", "Contract Accepted", "accepted"
    else:
        type, title, verb = "contract_rejected", "Contract Rejected", "rejected"
    notify(
        db, data["freelancer_id"], type, title,
        f"The client {verb} your contract for \"{data['project_title']}\"",
        project_id=data["project_id"],
        data={"contract_id": data["contract_id"], "conversation_id": data["conversation_id"]},
    )
    manager.emit(conversation_room(data["conversation_id"]), "contract-updated", data)


def on_contract_accepted(db: Session, data: dict):
    _on_contract_responded(db, data, accepted=True)


def on_contract_rejected(db: Session, data: dict):
    _on_contract_responded(db, data, accepted=False)


def on_escrow_funded(db: Session, data: dict):
    manager.emit(conversation_room(data["conversation_id"]), "contract-updated", data)
    manager.emit(project_room(data["project_id"]), "escrow-funded", {
        "project_id": data["project_id"],
        "contract_id": data["contract_id"],
        "amount": data["amount"],
        "escrow_status": "held",
    })
    notify(
        db, data["freelancer_id"], "escrow_funded", "Project Funded",
        f"The client has deposited {_money(data['amount'])} in escrow for \"{data['project_title']}\". "
        "You can start working knowing payment is secured.",
        project_id=data["project_id"],
        data={"payment_id": data["payment_id"], "contract_id": data["contract_id"]},
    )
    notify(
        db, data["client_id"], "escrow_payment_held", "Payment Held in Escrow",
        f"Your payment of {_money(data['amount'])} for \"{data['project_title']}\" is held in escrow. "
        "It will be released to the freelancer once you approve the completed work.",
        project_id=data["project_id"],
        data={"payment_id": data["payment_id"], "contract_id": data["contract_id"]},
    )


def on_payment_completed(db: Session, data: dict):
    notify(
        db, data["freelancer_id"], "payment_received", "Payment Received",
        f"Payment of {_money(data['amount'])} received for project \"{data['project_title']}\". "
        "Project has been successfully completed.",
        project_id=data["project_id"],
        data={"payment_id": data["payment_id"]},
    )
    notify(
        db, data["client_id"], "project_completed", "Payment Successful",
        f"Payment of {_money(data['amount'])} sent for project \"{data['project_title']}\". Project has been closed.",
        project_id=data["project_id"],
        data={"payment_id": data["payment_id"]},
    )
    manager.emit(project_room(data["project_id"]), "payment-completed", data)


def on_escrow_released(db: Session, data: dict):
    notify(
        db, data["freelancer_id"], "escrow_released", "Payment Released",
        f"Payment of {_money(data['amount'])} has been released from escrow for project "
        f"\"{data['project_title']}\". The funds have been added to your earnings.",
        project_id=data["project_id"],
        data={"payment_id": data["payment_id"]},
    )
    notify(
        db, data["client_id"], "project_closed", "Project Completed",
        f"Payment of {_money(data['amount'])} has been released to {data['freelancer_name']} for project "
        f"\"{data['project_title']}\". The project has been closed.",
        project_id=data["project_id"],
        data={"payment_id": data["payment_id"]},
    )
    manager.emit(project_room(data["project_id"]), "escrow-released", data)


def on_message_created(db: Session, data: dict):
    manager.emit(conversation_room(data["conversation_id"]), "new-message", data)
    if data.get("recipient_id"):
        manager.emit(user_room(data["recipient_id"]), "message-notification", data)


def on_work_status_updated(db: Session, data: dict):
    manager.emit(project_room(data["project_id"]), "work-status-updated", data)


def on_work_submitted(db: Session, data: dict):
    notify(
        db, data["client_id"], "work_submitted", "Work Submitted",
        f"The freelancer has submitted the completed work for \"{data['project_title']}\". Please review it.",
        project_id=data["project_id"],
    )


def on_review_requested(db: Session, data: dict):
    message = f"The client requested changes on \"{data['project_title']}\"."
    if data.get("comments"):
        message = f"{message} {data['comments']}"
    notify(
        db, data["freelancer_id"], "review_requested", "Changes Requested", message,
        project_id=data["project_id"],
    )


def on_project_accepted(db: Session, data: dict):
    notify(
        db, data["freelancer_id"], "project_accepted", "Project Accepted",
        f"The client accepted your work on \"{data['project_title']}\". The project is now closed.",
        project_id=data["project_id"],
    )


EVENT_HANDLERS: Dict[str, Callable[[Session, dict], None]] = {
    "application.submitted": on_application_submitted,
    "application.accepted": on_application_accepted,
    "application.rejected": on_application_rejected,
    "contract.proposed": on_contract_proposed,
    "contract.accepted": on_contract_accepted,
    "contract.rejected": on_contract_rejected,
    "escrow.funded": on_escrow_funded,
    "payment.completed": on_payment_completed,
    "escrow.released": on_escrow_released,
    "message.created": on_message_created,
    "project.work_status_updated": on_work_status_updated,
    "project.work_submitted": on_work_submitted,
    "project.review_requested": on_review_requested,
    "project.accepted": on_project_accepted,
}


def dispatch_events(db: Session, events: Iterable[DomainEvent]):
    """Deliver committed events. Must be called after the producing transaction commits."""
    for event in events:
        handler = EVENT_HANDLERS.get(event.type)
        if handler is None:
            logger.warning("No handler registered for event %s", event.type)
        else:
            try:
                handler(db, event.data)
            except Exception:
                logger.exception("Failed to deliver event %s", event.type)
                db.rollback()
        publish_event(event.type, event.data)
