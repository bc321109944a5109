import logging
import os
import tempfile
from pathlib import Path

import streamlit as st


def _get(key: str, default: str | None = None) -> str | None:
    # Streamlit Cloud 의 secrets > 환경변수 > 기본값 순
    try:
        if hasattr(st, "secrets") and key in st.secrets:
            return st.secrets[key]
    except Exception:
        # secrets.toml 이 없으면 st.secrets 접근 자체가 예외
        pass
    return os.getenv(key, default)


def _get_int(key: str, default: int) -> int:
    raw = _get(key)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logging.getLogger(__name__).warning("invalid %s=%r, using %s", key, raw, default)
        return default


_PROJECT_ROOT = Path(__file__).resolve().parents[2]

# 실행 환경 판정 (cloud 면 임시 디렉터리 사용)
RUN_ENV = _get("UNITYLEARN_ENV", "local")  # "cloud" 또는 "local"

if RUN_ENV == "cloud":
    DATA_DIR = Path(tempfile.gettempdir()) / "unitylearn"
else:
    DATA_DIR = _PROJECT_ROOT / "data"

DATABASE_URL = _get("DATABASE_URL", f"sqlite:///{(DATA_DIR / 'unitylearn.db').as_posix()}")

# 클라이언트별 로컬 저장소 (브라우저 localStorage 대응)
STORAGE_DIR = Path(_get("UNITYLEARN_STORAGE_DIR", str(DATA_DIR / "storage")))

# 진단 진행 상황 유효 시간
PROGRESS_TTL_HOURS = _get_int("UNITYLEARN_PROGRESS_TTL_HOURS", 24)
MAX_GUEST_ATTEMPTS = _get_int("UNITYLEARN_MAX_GUEST_ATTEMPTS", 5)

# 조회 캐시 유효 시간 (초)
CACHE_TTL_SECONDS = _get_int("UNITYLEARN_CACHE_TTL_SECONDS", 60)

# OpenAI / 호환 API
OPENAI_API_KEY = _get("OPENAI_API_KEY", "")
OPENAI_BASE_URL = _get("OPENAI_BASE_URL", "")
OPENAI_MODEL = _get("OPENAI_MODEL", "gpt-4o-mini")

LOG_LEVEL = (_get("UNITYLEARN_LOG_LEVEL", "INFO") or "INFO").upper()
DEBUG_DEV = _get("UNITYLEARN_DEBUG", "0") == "1"

# 로컬 저장소 키
PROGRESS_STORAGE_KEY = "unitylearn_diagnostic_progress"
RESULT_STORAGE_KEY = "unitylearn_diagnostic_result"
GUEST_SESSION_KEY = "unitylearn_guest_session"
GUEST_QUIZ_RESULTS_KEY = "unitylearn_guest_quiz_results"
ONBOARDING_STORAGE_KEY = "unitylearn_onboarding"
ONBOARDING_COMPLETED_KEY = "unitylearn_onboarding_completed"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """엔트리 스크립트에서 한 번만 호출"""
    logging.basicConfig(level=level or LOG_LEVEL, format=LOG_FORMAT)


def ensure_data_dirs() -> None:
    for d in (DATA_DIR, STORAGE_DIR):
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logging.getLogger(__name__).warning("cannot create %s: %s", d, e)
