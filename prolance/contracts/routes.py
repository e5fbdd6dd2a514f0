from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from prolance.applications.crud import get_application
from prolance.auth.models import User
from prolance.contracts.crud import create_contract, get_contract, get_conversation_contracts, get_user_contracts
from prolance.contracts.models import ContractStatus, AcceptanceMethod
from prolance.contracts.schemas import ContractPropose, ContractStatusUpdate, ContractResponse
from prolance.database import get_db
from prolance.errors import http_error
from prolance.events import DomainEvent
from prolance.messaging.crud import get_conversation, add_system_message, message_event
from prolance.notifications.handlers import dispatch_events
from prolance.payments.crud import has_open_payment
from prolance.payments.escrow import EscrowGuardError, accept_contract, reject_contract
from prolance.projects.crud import get_project
from prolance.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contracts", tags=["contracts"])


@router.post("/propose", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
def propose_contract(
    request: ContractPropose,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = get_conversation(db, request.conversation_id)
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if not conversation.has_participant(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to propose a contract in this conversation"
        )
    application = get_application(db, request.application_id)
    if not application or application.freelancer_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid application")
    project = get_project(db, request.project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    details = request.contract_details.model_dump()
    details["milestones"] = [m.model_dump(mode="json") for m in request.contract_details.milestones]
    contract = create_contract(
        db,
        project_id=project.id,
        application_id=application.id,
        conversation_id=conversation.id,
        freelancer_id=current_user.id,
        client_id=project.client_id,
        details=details,
    )
    system_message = add_system_message(
        db,
        conversation,
        f"Contract Proposal: {current_user.name} has proposed a work contract for \"{project.title}\" "
        f"with a budget of ₹{contract.final_amount:,.0f}. Please review and respond.",
    )
    db.commit()
    db.refresh(contract)
    logger.info("Contract %s proposed in conversation %s", contract.id, conversation.id)

    dispatch_events(db, [
        DomainEvent("contract.proposed", {
            "contract_id": contract.id,
            "conversation_id": conversation.id,
            "project_id": project.id,
            "project_title": project.title,
            "client_id": contract.client_id,
            "freelancer_id": contract.freelancer_id,
            "freelancer_name": current_user.name,
            "title": contract.title,
            "final_amount": contract.final_amount,
        }),
        message_event(system_message),
    ])
    return contract


@router.get("/conversation/{conversation_id}", response_model=list[ContractResponse])
def get_contracts_by_conversation(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if not conversation.has_participant(current_user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return get_conversation_contracts(db, conversation_id)


@router.get("/my-contracts", response_model=list[ContractResponse])
def get_my_contracts(
    role: Optional[str] = None,
    status_filter: Optional[ContractStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_user_contracts(db, current_user.id, role, status_filter)


@router.get("/{contract_id}", response_model=ContractResponse)
def get_contract_endpoint(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    contract = get_contract(db, contract_id)
    if not contract:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
    if current_user.id not in (contract.client_id, contract.freelancer_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return contract


@router.patch("/{contract_id}/status", response_model=ContractResponse)
def update_contract_status(
    contract_id: int,
    request: ContractStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Direct accept or reject by the client. Escrow-funded acceptance goes through payment verification."""
    if request.status not in (ContractStatus.ACCEPTED, ContractStatus.REJECTED):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status")
    contract = get_contract(db, contract_id, for_update=True)
    if not contract:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
    if contract.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the client can accept or reject contracts"
        )

    try:
        if request.status == ContractStatus.ACCEPTED:
            if contract.status == ContractStatus.PENDING and has_open_payment(db, contract.id):
                raise EscrowGuardError(
                    "Contract has an escrow payment in progress",
                    "Complete or cancel the escrow payment before accepting directly",
                )
            if request.client_notes:
                contract.client_notes = request.client_notes
            events = accept_contract(db, contract, AcceptanceMethod.DIRECT)
        else:
            events = reject_contract(db, contract, request.client_notes)
    except EscrowGuardError as exc:
        db.rollback()
        raise http_error(status.HTTP_400_BAD_REQUEST, exc.message, exc.error)

    conversation = get_conversation(db, contract.conversation_id)
    if events and conversation:
        project = get_project(db, contract.project_id)
        if request.status == ContractStatus.ACCEPTED:
            content = f"Contract Accepted! The project \"{project.title}\" is now in progress. The freelancer can begin work."
        elif request.client_notes:
            content = f"Contract rejected: {request.client_notes}"
        else:
            content = "Contract rejected."
        events.append(message_event(add_system_message(db, conversation, content)))
    db.commit()
    db.refresh(contract)
    dispatch_events(db, events)
    return contract
