# services/db.py
from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Optional

import streamlit as st
from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Mapped, Session, declarative_base, mapped_column, sessionmaker

from unitylearn.services import config

logger = logging.getLogger(__name__)

Base = declarative_base()
_database_url = config.DATABASE_URL
_SessionLocal = None


# 시각 컬럼은 모두 tz 정보 없는 UTC 로 저장한다
def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def to_db_utc(ts: dt.datetime) -> dt.datetime:
    """aware 값은 UTC 로 바꿔 tz 를 떼고, naive 값은 이미 UTC 로 본다"""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(dt.timezone.utc).replace(tzinfo=None)


def from_db_utc(ts: dt.datetime, tz: Optional[dt.tzinfo] = None) -> dt.datetime:
    """저장된 UTC 값을 tz (None 이면 서버 로컬) 의 naive 시각으로"""
    return ts.replace(tzinfo=dt.timezone.utc).astimezone(tz).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    nickname: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    level: Mapped[str] = mapped_column(String(32), default="Beginner", nullable=False)  # UserLevel
    interests_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    def to_public_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "nickname": self.nickname,
            "level": self.level,
            "onboarding_completed": self.onboarding_completed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    quiz_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    answers_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


class GuestQuizAttempt(Base):
    __tablename__ = "guest_quiz_attempts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quiz_id: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    answers_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


class DiagnosticRecord(Base):
    __tablename__ = "diagnostic_records"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    recommended_level: Mapped[str] = mapped_column(String(32), nullable=False)
    breakdown_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=_utcnow)


def _ensure_sqlite_dir(url: str):
    if url.startswith("sqlite:///") and not url.startswith("sqlite:///:memory:"):
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)


@st.cache_resource(show_spinner=False)
def _create_engine(url: str) -> Engine:
    # URL 마다 엔진 하나를 재실행 사이에 공유
    _ensure_sqlite_dir(url)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, echo=False, future=True, connect_args=connect_args)
    logger.debug("engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def configure(url: str) -> None:
    """엔진을 다시 묶는다 (테스트・별도 DB 용)"""
    global _database_url, _SessionLocal
    _database_url = url
    _SessionLocal = None


def get_engine() -> Engine:
    return _create_engine(_database_url)


def get_session() -> Session:
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None or _SessionLocal.kw.get("bind") is not engine:
        _SessionLocal = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False, future=True
        )
    return _SessionLocal()


def init_db():
    Base.metadata.create_all(get_engine())


if __name__ == "__main__":
    init_db()
    print(f"DB initialized at: {_database_url}")
