from __future__ import annotations

import json
import logging
import time
from typing import Callable, Optional

from unitylearn.domain.models import DiagnosticResult, SessionProgress
from unitylearn.services import config
from unitylearn.services.local_storage import LocalStorage

logger = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class ProgressStore:
    """진단 테스트 진행 상황 (한 레코드). load / save / clear"""

    def __init__(
        self,
        storage: LocalStorage,
        key: str = config.PROGRESS_STORAGE_KEY,
        ttl_hours: float = config.PROGRESS_TTL_HOURS,
        clock: Callable[[], int] = now_ms,
    ):
        self.storage = storage
        self.key = key
        self.ttl_ms = int(ttl_hours * MS_PER_HOUR)
        self.clock = clock

    def load(self) -> Optional[SessionProgress]:
        try:
            raw = self.storage.get_item(self.key)
        except Exception:
            logger.exception("failed to read diagnostic progress")
            return None
        if not raw:
            return None

        try:
            progress = SessionProgress.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError):
            # JSONDecodeError 는 ValueError 의 서브클래스
            logger.info("discarding malformed diagnostic progress")
            self.clear()
            return None

        if self.clock() - progress.start_time > self.ttl_ms:
            logger.info("discarding expired diagnostic progress (started at %s)", progress.start_time)
            self.clear()
            return None
        return progress

    def save(self, progress: SessionProgress) -> None:
        try:
            self.storage.set_item(self.key, json.dumps(progress.to_dict(), ensure_ascii=False))
        except Exception:
            logger.exception("failed to save diagnostic progress")

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except Exception:
            logger.exception("failed to clear diagnostic progress")


class ResultStore:
    """결과 페이지로 넘기는 단명 레코드"""

    def __init__(self, storage: LocalStorage, key: str = config.RESULT_STORAGE_KEY):
        self.storage = storage
        self.key = key

    def save(self, result: DiagnosticResult) -> None:
        try:
            self.storage.set_item(self.key, json.dumps(result.to_dict(), ensure_ascii=False))
        except Exception:
            logger.exception("failed to save diagnostic result")

    def load(self) -> Optional[DiagnosticResult]:
        try:
            raw = self.storage.get_item(self.key)
        except Exception:
            logger.exception("failed to read diagnostic result")
            return None
        if not raw:
            return None
        try:
            return DiagnosticResult.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.info("discarding malformed diagnostic result")
            self.clear()
            return None

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except Exception:
            logger.exception("failed to clear diagnostic result")
