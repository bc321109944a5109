"""
게스트 모드.

로컬 쪽은 기기별 저장소에 게스트 세션 (시도 횟수 제한 + 결과 목록)을 두고,
서버 쪽은 guest_quiz_attempts 테이블에 시도를 쌓아 두었다가 회원가입 시
한 트랜잭션으로 사용자 시도로 옮긴다.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Optional

from unitylearn.domain.models import GuestQuizResult, GuestSession
from unitylearn.services import cache, config
from unitylearn.services.db import GuestQuizAttempt, QuizAttempt, User, get_session, init_db
from unitylearn.services.errors import AppError
from unitylearn.services.local_storage import LocalStorage

logger = logging.getLogger(__name__)


def new_guest_id() -> str:
    return f"guest_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class GuestSessionStore:
    def __init__(self, storage: LocalStorage, max_attempts: int = config.MAX_GUEST_ATTEMPTS):
        self.storage = storage
        self.max_attempts = max_attempts

    def create(self) -> GuestSession:
        session = GuestSession(
            id=new_guest_id(),
            created_at=dt.datetime.now(),
            attempts=0,
            max_attempts=self.max_attempts,
            quiz_results=[],
        )
        self.update(session)
        return session

    def get(self) -> Optional[GuestSession]:
        try:
            raw = self.storage.get_item(config.GUEST_SESSION_KEY)
        except Exception:
            logger.exception("failed to read guest session")
            return None
        if not raw:
            return None
        try:
            return GuestSession.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.info("ignoring malformed guest session")
            return None

    def update(self, session: GuestSession) -> None:
        try:
            self.storage.set_item(
                config.GUEST_SESSION_KEY, json.dumps(session.to_dict(), ensure_ascii=False)
            )
        except Exception:
            logger.exception("failed to save guest session")

    def increment_attempts(self) -> bool:
        session = self.get()
        if session is None:
            return False
        if session.attempts >= session.max_attempts:
            return False
        session.attempts += 1
        self.update(session)
        return True

    def can_attempt(self) -> bool:
        session = self.get()
        if session is None:
            return True  # 세션이 없으면 새로 만들 수 있다
        return session.attempts < session.max_attempts

    def is_limit_reached(self) -> bool:
        session = self.get()
        if session is None:
            return False
        return session.attempts >= session.max_attempts

    def remaining_attempts(self) -> int:
        session = self.get()
        if session is None:
            return self.max_attempts
        return max(0, session.max_attempts - session.attempts)

    def save_quiz_result(self, result: GuestQuizResult) -> None:
        session = self.get()
        if session is None:
            return
        session.quiz_results.append(result)
        self.update(session)

    def clear(self) -> None:
        for key in (config.GUEST_SESSION_KEY, config.GUEST_QUIZ_RESULTS_KEY):
            try:
                self.storage.remove_item(key)
            except Exception:
                logger.exception("failed to remove %s", key)

    def has_data(self) -> bool:
        session = self.get()
        return session is not None and len(session.quiz_results) > 0


# ---- 서버 쪽 ----

def record_guest_attempt(guest_id: str, quiz_id: str, score: int, answers: Dict[str, str]) -> int:
    init_db()
    with get_session() as db:
        row = GuestQuizAttempt(
            guest_id=guest_id,
            quiz_id=quiz_id,
            score=score,
            answers_json=json.dumps(answers, ensure_ascii=False),
        )
        db.add(row)
        db.commit()
        return row.id


def migrate_guest_attempts(guest_session_id: str, user_id: int) -> int:
    """게스트 시도를 사용자 시도로 옮기고 게스트 행은 삭제. 옮긴 건수를 반환"""
    init_db()
    with get_session() as db:
        user = db.get(User, user_id)
        if user is None:
            raise AppError("USER_NOT_FOUND", "User not found")

        guest_rows = (
            db.query(GuestQuizAttempt)
            .filter(GuestQuizAttempt.guest_id == guest_session_id)
            .order_by(GuestQuizAttempt.id)
            .all()
        )
        if not guest_rows:
            raise AppError("NO_GUEST_DATA", "No guest data found")

        # 한 트랜잭션: 실패하면 세션 종료 시 전부 롤백
        for g in guest_rows:
            db.add(QuizAttempt(
                user_id=user.id,
                quiz_id=g.quiz_id,
                score=g.score,
                answers_json=g.answers_json,
                completed=True,
                created_at=g.created_at,
            ))
            db.delete(g)
        db.commit()
    cache.invalidate(cache.DASHBOARD)

    logger.info("migrated %d guest attempts from %s to user %s",
                len(guest_rows), guest_session_id, user_id)
    return len(guest_rows)


@dataclass
class MigrationOutcome:
    success: bool
    migrated_count: int = 0
    error: Optional[str] = None


def migrate_guest_data(store: GuestSessionStore, user_id: int) -> MigrationOutcome:
    session = store.get()
    if session is None or not session.quiz_results:
        return MigrationOutcome(success=True, migrated_count=0)

    try:
        count = migrate_guest_attempts(session.id, user_id)
    except AppError as e:
        logger.warning("guest migration failed: %s", e.code)
        return MigrationOutcome(success=False, error=e.message)
    except Exception as e:
        logger.exception("guest migration failed")
        return MigrationOutcome(success=False, error=str(e) or "Unknown error")

    # 옮긴 뒤에는 로컬 게스트 데이터 삭제
    store.clear()
    return MigrationOutcome(success=True, migrated_count=count)
