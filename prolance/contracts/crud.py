from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from prolance.contracts.models import Contract, ContractStatus


def create_contract(db: Session, project_id: int, application_id: int, conversation_id: int,
                    freelancer_id: int, client_id: int, details: dict):
    """Stage a pending contract; the caller commits together with the chat message."""
    contract = Contract(
        project_id=project_id,
        application_id=application_id,
        conversation_id=conversation_id,
        freelancer_id=freelancer_id,
        client_id=client_id,
        status=ContractStatus.PENDING,
        escrow_funded=False,
        **details
    )
    db.add(contract)
    db.flush()
    return contract


def get_contract(db: Session, contract_id: int, for_update: bool = False):
    query = db.query(Contract).filter(Contract.id == contract_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_conversation_contracts(db: Session, conversation_id: int):
    return db.query(Contract).filter(
        Contract.conversation_id == conversation_id
    ).order_by(Contract.created_at.desc(), Contract.id.desc()).all()


def get_user_contracts(db: Session, user_id: int, role: Optional[str] = None,
                       status: Optional[ContractStatus] = None):
    query = db.query(Contract)
    if role == "client":
        query = query.filter(Contract.client_id == user_id)
    elif role == "freelancer":
        query = query.filter(Contract.freelancer_id == user_id)
    else:
        query = query.filter(or_(Contract.client_id == user_id, Contract.freelancer_id == user_id))
    if status:
        query = query.filter(Contract.status == status)
    return query.order_by(Contract.created_at.desc(), Contract.id.desc()).all()
