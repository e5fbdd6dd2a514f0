"""Status transitions shared by payments, contracts and projects.

Every function here mutates rows on the caller's session and returns the
domain events describing what changed. Nothing is committed: the caller
commits once for the whole transition, then hands the events to
`prolance.notifications.handlers.dispatch_events`.

Guards run before the first mutation, so an `EscrowGuardError` always leaves
the session as it was.
"""
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from prolance.auth.models import User
from prolance.contracts.models import Contract, ContractStatus, AcceptanceMethod
from prolance.events import DomainEvent
from prolance.payments.models import Payment, PaymentStatus, EscrowStatus
from prolance.projects.models import Project, ProjectStatus

logger = logging.getLogger(__name__)

SETTLEABLE_STATUSES = (PaymentStatus.CAPTURED, PaymentStatus.AUTHORIZED)


class EscrowGuardError(Exception):
    """A precondition of a payment transition does not hold."""

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error


def _get_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise EscrowGuardError("Project not found", f"Project {project_id} does not exist")
    return project


def _get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def _contract_event_data(contract: Contract, project: Project) -> dict:
    return {
        "contract_id": contract.id,
        "conversation_id": contract.conversation_id,
        "project_id": project.id,
        "project_title": project.title,
        "client_id": contract.client_id,
        "freelancer_id": contract.freelancer_id,
        "status": contract.status.value,
        "acceptance_method": contract.acceptance_method.value if contract.acceptance_method else None,
    }


def _record_escrow_funding(contract: Contract, payment: Payment, now: datetime):
    contract.escrow_funded = True
    contract.escrow_payment_id = payment.id
    contract.escrow_funded_at = now


def _escrow_funded_event(contract: Contract, project: Project, payment: Payment) -> DomainEvent:
    data = _contract_event_data(contract, project)
    data.update({"payment_id": payment.id, "amount": payment.amount, "escrow_status": EscrowStatus.HELD.value})
    return DomainEvent("escrow.funded", data)


def accept_contract(
    db: Session,
    contract: Contract,
    method: AcceptanceMethod,
    payment: Optional[Payment] = None,
) -> List[DomainEvent]:
    """The single path by which a contract becomes accepted.

    A contract that is already accepted is left alone and no events are
    produced, so a late verify call or a redelivered webhook is harmless.
    The exception is escrow funding for a contract accepted without it:
    the escrow fields are recorded and `escrow.funded` fires once.
    """
    if contract.status == ContractStatus.ACCEPTED:
        if method != AcceptanceMethod.ESCROW_FUNDED or payment is None or contract.escrow_funded:
            return []
        project = _get_project(db, contract.project_id)
        _record_escrow_funding(contract, payment, datetime.utcnow())
        return [_escrow_funded_event(contract, project, payment)]
    if contract.status != ContractStatus.PENDING:
        raise EscrowGuardError(
            "Contract can no longer be accepted",
            f"Contract status is {contract.status.value}",
        )
    if method == AcceptanceMethod.ESCROW_FUNDED and payment is None:
        raise EscrowGuardError("Escrow acceptance requires a funded payment")
    project = _get_project(db, contract.project_id)

    now = datetime.utcnow()
    contract.status = ContractStatus.ACCEPTED
    contract.acceptance_method = method
    contract.responded_at = now
    if method == AcceptanceMethod.ESCROW_FUNDED:
        _record_escrow_funding(contract, payment, now)

    project.status = ProjectStatus.IN_PROGRESS
    project.accepted_proposal_id = contract.application_id
    project.assigned_freelancer_id = contract.freelancer_id

    if method == AcceptanceMethod.DIRECT:
        return [DomainEvent("contract.accepted", _contract_event_data(contract, project))]
    return [_escrow_funded_event(contract, project, payment)]


def reject_contract(db: Session, contract: Contract, client_notes: Optional[str] = None) -> List[DomainEvent]:
    if contract.status != ContractStatus.PENDING:
        raise EscrowGuardError(
            "Contract can no longer be rejected",
            f"Contract status is {contract.status.value}",
        )
    project = _get_project(db, contract.project_id)
    contract.status = ContractStatus.REJECTED
    contract.responded_at = datetime.utcnow()
    if client_notes is not None:
        contract.client_notes = client_notes
    return [DomainEvent("contract.rejected", _contract_event_data(contract, project))]


def check_payment_settleable(payment: Payment, action: str):
    """Guards shared by escrow funding and direct completion, checked in order."""
    if payment.status == PaymentStatus.FAILED:
        raise EscrowGuardError(
            f"Cannot {action} - payment has failed",
            payment.error_description or "Payment failed",
        )
    if payment.status == PaymentStatus.REFUNDED or payment.escrow_status == EscrowStatus.REFUNDED:
        raise EscrowGuardError(f"Cannot {action} - payment has been refunded", "Payment was refunded")
    if payment.status not in SETTLEABLE_STATUSES:
        raise EscrowGuardError(
            f"Cannot {action} - payment not completed",
            f"Payment status is {payment.status.value}",
        )
    if not payment.verified:
        raise EscrowGuardError(f"Cannot {action} - payment not verified", "Payment verification pending")


def _credit_parties(db: Session, payment: Payment):
    freelancer = _get_user(db, payment.freelancer_id)
    client = _get_user(db, payment.client_id)
    if freelancer:
        freelancer.total_earnings = (freelancer.total_earnings or 0) + payment.amount
        freelancer.completed_projects = (freelancer.completed_projects or 0) + 1
    if client:
        client.total_spent = (client.total_spent or 0) + payment.amount
        client.completed_projects = (client.completed_projects or 0) + 1
    return freelancer, client


def _payment_event_data(payment: Payment, project: Project) -> dict:
    return {
        "payment_id": payment.id,
        "project_id": project.id,
        "project_title": project.title,
        "client_id": payment.client_id,
        "freelancer_id": payment.freelancer_id,
        "amount": payment.amount,
        "status": payment.status.value,
        "escrow_status": payment.escrow_status.value,
    }


def complete_direct_payment(db: Session, payment: Payment) -> List[DomainEvent]:
    """Non-escrow payment for a completed project: close it and credit both parties."""
    check_payment_settleable(payment, "complete payment")
    project = _get_project(db, payment.project_id)
    if project.status == ProjectStatus.CLOSED:
        return []
    project.status = ProjectStatus.CLOSED
    _credit_parties(db, payment)
    return [DomainEvent("payment.completed", _payment_event_data(payment, project))]


def settle_payment(db: Session, payment: Payment) -> List[DomainEvent]:
    """Advance contract and project from the current payment state.

    Called identically by the verify handler and the webhook handler; whichever
    arrives second finds the work done and returns no events.
    """
    if not payment.is_escrow:
        return complete_direct_payment(db, payment)
    check_payment_settleable(payment, "accept contract")
    contract = db.query(Contract).filter(Contract.id == payment.contract_id).first()
    if not contract:
        raise EscrowGuardError("Contract not found", f"Contract {payment.contract_id} does not exist")
    return accept_contract(db, contract, AcceptanceMethod.ESCROW_FUNDED, payment)


def mark_signature_failed(payment: Payment):
    payment.status = PaymentStatus.FAILED
    payment.error_description = "Payment signature verification failed"


def record_gateway_payment(payment: Payment, gateway_payment: dict):
    """Copy the gateway's view of a verified payment onto the local row."""
    now = datetime.utcnow()
    try:
        payment.status = PaymentStatus(gateway_payment.get("status"))
    except ValueError:
        logger.warning("Unknown gateway status %r for payment %s", gateway_payment.get("status"), payment.id)
        payment.status = PaymentStatus.PENDING
    payment.verified = True
    payment.verified_at = now
    if payment.status == PaymentStatus.CAPTURED and payment.captured_at is None:
        payment.captured_at = now
    payment.payment_method = gateway_payment.get("method")
    payment.bank = gateway_payment.get("bank")
    payment.wallet = gateway_payment.get("wallet")
    payment.vpa = gateway_payment.get("vpa")
    payment.email = gateway_payment.get("email")
    payment.contact = gateway_payment.get("contact")
    if payment.status == PaymentStatus.FAILED:
        record_payment_error(payment, gateway_payment)


def record_payment_error(payment: Payment, entity: dict):
    payment.error_code = entity.get("error_code")
    payment.error_description = entity.get("error_description")
    payment.error_source = entity.get("error_source")
    payment.error_step = entity.get("error_step")
    payment.error_reason = entity.get("error_reason")


def apply_webhook_event(db: Session, payment: Payment, event: str, entity: dict) -> List[DomainEvent]:
    """Apply one gateway webhook event to a payment.

    `payment.captured` settles through `settle_payment`, the same path as
    verify, so the contract and project move even when the client never
    returns from checkout. `refund.created` only moves `status`;
    `escrow_status` is never set to refunded here.
    """
    now = datetime.utcnow()
    if event == "payment.authorized":
        if payment.status in (PaymentStatus.CREATED, PaymentStatus.PENDING):
            payment.status = PaymentStatus.AUTHORIZED
        if entity.get("id") and not payment.gateway_payment_id:
            payment.gateway_payment_id = entity["id"]
        return []

    if event == "payment.captured":
        if payment.status == PaymentStatus.REFUNDED:
            return []
        payment.status = PaymentStatus.CAPTURED
        payment.captured_at = payment.captured_at or now
        payment.verified = True
        payment.verified_at = payment.verified_at or now
        if entity.get("id") and not payment.gateway_payment_id:
            payment.gateway_payment_id = entity["id"]
        if entity.get("method"):
            payment.payment_method = entity["method"]
        try:
            return settle_payment(db, payment)
        except EscrowGuardError as exc:
            logger.warning("Captured payment %s not settled: %s (%s)", payment.id, exc.message, exc.error)
            return []

    if event == "payment.failed":
        if payment.status != PaymentStatus.CAPTURED:
            payment.status = PaymentStatus.FAILED
            record_payment_error(payment, entity)
        return []

    if event == "refund.created":
        payment.status = PaymentStatus.REFUNDED
        payment.refunded_at = now
        return []

    logger.info("Ignoring webhook event %s for payment %s", event, payment.id)
    return []


def release_escrow(db: Session, payment: Payment, released_by: int) -> List[DomainEvent]:
    """Release a held escrow payment to the freelancer and close the project."""
    if payment.escrow_status != EscrowStatus.HELD:
        raise EscrowGuardError("Payment is not in escrow status", f"Escrow status is {payment.escrow_status.value}")
    if payment.status == PaymentStatus.FAILED:
        raise EscrowGuardError(
            "Cannot release escrow - payment has failed",
            payment.error_description or "Payment failed",
        )
    if payment.status == PaymentStatus.REFUNDED:
        raise EscrowGuardError("Cannot release escrow - payment has been refunded", "Payment was already refunded")
    if payment.status != PaymentStatus.CAPTURED:
        raise EscrowGuardError(
            "Cannot release escrow - payment not captured",
            f"Payment status is {payment.status.value}. Only captured payments can be released.",
        )
    if not payment.verified:
        raise EscrowGuardError(
            "Cannot release escrow - payment not verified",
            "Payment verification pending or failed",
        )
    project = _get_project(db, payment.project_id)
    if project.status != ProjectStatus.COMPLETED:
        raise EscrowGuardError(
            "Project must be in completed status before releasing payment",
            f"Project status is {project.status.value}",
        )

    payment.escrow_status = EscrowStatus.RELEASED
    payment.released_at = datetime.utcnow()
    payment.released_by = released_by
    project.status = ProjectStatus.CLOSED
    freelancer, _ = _credit_parties(db, payment)

    data = _payment_event_data(payment, project)
    data["freelancer_name"] = freelancer.name if freelancer else "the freelancer"
    return [DomainEvent("escrow.released", data)]
