from __future__ import annotations

import hmac
import logging
import secrets
import uuid
from hashlib import pbkdf2_hmac

from fastapi import Depends, Header, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import config
from .db import get_db
from .models import Admin, AdminSession

logger = logging.getLogger(__name__)

HASH_ITERATIONS = 240_000


def hash_password(password: str, salt: str | None = None) -> str:
    """
    Hash a password for the admins table.

    Format: pbkdf2_sha256$iterations$salt$hexdigest
    """
    salt = salt or secrets.token_hex(16)
    digest = pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), HASH_ITERATIONS)
    return f"pbkdf2_sha256${HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    digest = pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds)
    return hmac.compare_digest(digest.hex(), expected)


def create_admin(db: Session, username: str, password: str) -> Admin:
    admin = Admin(id=str(uuid.uuid4()), username=username, password_hash=hash_password(password))
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"Admin {username} created")
    return admin


def ensure_default_admin(db: Session) -> None:
    if db.scalar(select(func.count()).select_from(Admin)):
        return
    create_admin(db, config.ADMIN_USERNAME, config.ADMIN_PASSWORD)


def authenticate(db: Session, username: str, password: str) -> str | None:
    admin = db.scalars(select(Admin).where(Admin.username == username)).first()
    if not admin or not verify_password(password, admin.password_hash):
        logger.warning(f"Failed login for {username}")
        return None
    token = str(uuid.uuid4())
    db.add(AdminSession(token=token, admin_id=admin.id))
    db.commit()
    return token


def require_admin(
    db: Session = Depends(get_db),
    authorization: str | None = Header(default=None),
) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing admin token")
    token = authorization.replace("Bearer ", "", 1).strip()
    session = db.get(AdminSession, token)
    if not session:
        raise HTTPException(status_code=401, detail="Invalid admin token")
