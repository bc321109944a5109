# services/auth.py
from __future__ import annotations

import json
import logging
import re
from typing import Iterable, Optional

import bcrypt

from unitylearn.services import cache
from unitylearn.services.db import User, get_session, init_db
from unitylearn.services.errors import AppError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(plain: str) -> str:
    if not isinstance(plain, str) or not plain:
        raise ValueError("Password must be non-empty string")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def create_user(email: str, password: str, name: str) -> User:
    addr = normalize_email(email)
    if not addr:
        raise AppError("EMAIL_REQUIRED", "이메일을 입력해주세요.")
    if not _EMAIL_RE.match(addr):
        raise AppError("INVALID_EMAIL", "올바른 이메일 형식이 아닙니다.")
    if not password:
        raise AppError("PASSWORD_REQUIRED", "비밀번호를 입력해주세요.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AppError("PASSWORD_TOO_SHORT", "비밀번호는 최소 8자 이상이어야 합니다.")
    display = (name or "").strip()
    if not display:
        raise AppError("NAME_REQUIRED", "이름을 입력해주세요.")

    init_db()
    with get_session() as db:
        exists = db.query(User).filter(User.email == addr).first()
        if exists:
            raise AppError("USER_ALREADY_EXISTS", "이미 가입된 이메일입니다.")

        user = User(email=addr, name=display, password_hash=hash_password(password))
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("user created: id=%s", user.id)
        return user


def authenticate(email: str, password: str) -> Optional[User]:
    addr = normalize_email(email)
    init_db()
    with get_session() as db:
        user = db.query(User).filter(User.email == addr).first()
        if user and verify_password(password or "", user.password_hash):
            return user
        return None


def get_user_by_id(user_id: int) -> Optional[User]:
    init_db()
    with get_session() as db:
        return db.query(User).filter(User.id == user_id).first()


def update_profile(
    user_id: int,
    nickname: Optional[str] = None,
    level: Optional[str] = None,
    interests: Optional[Iterable[str]] = None,
    onboarding_completed: Optional[bool] = None,
) -> User:
    """None 인 항목은 건드리지 않는다"""
    init_db()
    with get_session() as db:
        user = db.get(User, user_id)
        if user is None:
            raise AppError("USER_NOT_FOUND", "사용자를 찾을 수 없습니다.")
        if nickname is not None:
            user.nickname = nickname.strip() or None
        if level is not None:
            user.level = level
        if interests is not None:
            user.interests_json = json.dumps(list(interests), ensure_ascii=False)
        if onboarding_completed is not None:
            user.onboarding_completed = onboarding_completed
        db.commit()
        db.refresh(user)
    cache.invalidate(cache.USERS)
    return user


@cache.cached_query(cache.USERS)
def get_user_profile(user_id: int) -> Optional[dict]:
    """화면용 프로필 (캐시됨). ORM 객체 대신 dict 를 돌려준다"""
    user = get_user_by_id(user_id)
    return user.to_public_dict() if user else None
