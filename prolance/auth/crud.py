import os
import re

from sqlalchemy import or_
from sqlalchemy.orm import Session

from prolance.auth.models import User, UserRole
from prolance.security import hash_password

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "").strip().lower()

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20


def get_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == email.lower()).first()


def get_user_by_identifier(db: Session, identifier: str):
    """Look a user up by email or username."""
    value = identifier.strip().lower()
    return db.query(User).filter(or_(User.email == value, User.username == value)).first()


def username_base(email: str) -> str:
    base = re.sub(r"[^a-z0-9_-]", "", email.split("@")[0].lower())
    return base.ljust(USERNAME_MIN_LENGTH, "0")[:USERNAME_MAX_LENGTH]


def generate_username(db: Session, email: str) -> str:
    base = username_base(email)
    username = base
    counter = 1
    while db.query(User.id).filter(User.username == username).first():
        suffix = str(counter)
        username = base[:USERNAME_MAX_LENGTH - len(suffix)] + suffix
        counter += 1
    return username


def create_user(db: Session, name: str, email: str, password: str, role: UserRole = UserRole.FREELANCER):
    email = email.lower()
    if ADMIN_EMAIL and email == ADMIN_EMAIL:
        role = UserRole.ADMIN
    db_user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        username=generate_username(db, email),
        role=role,
        skills=[],
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def set_password(db: Session, user: User, password: str):
    user.password_hash = hash_password(password)
    db.commit()
