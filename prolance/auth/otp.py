"""Password reset one-time codes kept in Redis.

Only a bcrypt hash of the code is stored; Redis expires the key after
OTP_EXPIRE_SECONDS so an expired code and a never-requested one look the same.
"""
import logging
import os
import secrets

import redis

from prolance.security import pwd_context

logger = logging.getLogger(__name__)

OTP_EXPIRE_SECONDS = int(os.getenv("OTP_EXPIRE_SECONDS", "600"))


def otp_key(email: str) -> str:
    return f"otp:password-reset:{email.lower()}"


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def store_otp(client: redis.Redis, email: str, otp: str, expire_seconds: int = OTP_EXPIRE_SECONDS):
    client.set(otp_key(email), pwd_context.hash(otp), ex=expire_seconds)
    logger.info("Stored password reset OTP for %s with %ss TTL", email, expire_seconds)


def has_otp(client: redis.Redis, email: str) -> bool:
    return client.get(otp_key(email)) is not None


def check_otp(client: redis.Redis, email: str, otp: str) -> bool:
    hashed = client.get(otp_key(email))
    if not hashed:
        return False
    return pwd_context.verify(str(otp).strip(), hashed)


def consume_otp(client: redis.Redis, email: str, otp: str) -> bool:
    if not check_otp(client, email, otp):
        return False
    client.delete(otp_key(email))
    return True
