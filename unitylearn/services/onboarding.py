from __future__ import annotations

import datetime as dt
import json
import logging
import random
import re
from typing import Iterable, Optional

from unitylearn.domain.models import LEVELS, OnboardingData
from unitylearn.services import config
from unitylearn.services.auth import update_profile
from unitylearn.services.dashboard import quiz_level_to_user_level
from unitylearn.services.local_storage import LocalStorage

logger = logging.getLogger(__name__)

INTEREST_CATEGORIES = ("physics", "rendering", "ui", "animation", "audio", "scripting")
_NICKNAME_STRIP = re.compile(r"[^a-zA-Z0-9가-힣]")


def generate_default_nickname(email: Optional[str] = None, rng: random.Random | None = None) -> str:
    """이메일 로컬 파트 (2~20자)→ 안 되면 UnityLearner + 4자리 숫자"""
    if email:
        cleaned = _NICKNAME_STRIP.sub("", email.split("@")[0])
        if 2 <= len(cleaned) <= 20:
            return cleaned
    r = rng or random
    return f"UnityLearner{r.randint(1000, 9999)}"


class OnboardingStore:
    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.data = self.load()

    def load(self) -> OnboardingData:
        try:
            raw = self.storage.get_item(config.ONBOARDING_STORAGE_KEY)
            if raw:
                return OnboardingData.from_dict(json.loads(raw))
        except Exception:
            logger.exception("failed to load onboarding data")
        return OnboardingData()

    def is_completed(self) -> bool:
        try:
            return self.storage.get_item(config.ONBOARDING_COMPLETED_KEY) == "true"
        except Exception:
            logger.exception("failed to read onboarding flag")
            return False

    def _save(self) -> None:
        try:
            self.storage.set_item(
                config.ONBOARDING_STORAGE_KEY, json.dumps(self.data.to_dict(), ensure_ascii=False)
            )
        except Exception:
            logger.exception("failed to save onboarding data")

    def update_nickname(self, nickname: str) -> None:
        self.data.nickname = nickname
        self._save()

    def update_level(self, level: str) -> None:
        if level not in LEVELS:
            raise ValueError(f"unknown level: {level!r}")
        self.data.level = level
        self._save()

    def update_interests(self, interests: Iterable[str]) -> None:
        picked = [i for i in interests if i in INTEREST_CATEGORIES]
        self.data.interests = list(dict.fromkeys(picked))
        self._save()

    def complete(self, user_id: Optional[int] = None) -> OnboardingData:
        self.data.completed = True
        self.data.completed_at = dt.datetime.now(dt.timezone.utc).isoformat()
        self._save()
        try:
            self.storage.set_item(config.ONBOARDING_COMPLETED_KEY, "true")
        except Exception:
            logger.exception("failed to save onboarding flag")

        if user_id is not None:
            update_profile(
                user_id,
                nickname=self.data.nickname,
                level=quiz_level_to_user_level(self.data.level),
                interests=self.data.interests,
                onboarding_completed=True,
            )
        return self.data

    def skip(self) -> None:
        try:
            self.storage.set_item(config.ONBOARDING_COMPLETED_KEY, "true")
        except Exception:
            logger.exception("failed to save onboarding flag")

    def reset(self) -> None:
        for key in (config.ONBOARDING_STORAGE_KEY, config.ONBOARDING_COMPLETED_KEY):
            try:
                self.storage.remove_item(key)
            except Exception:
                logger.exception("failed to remove %s", key)
        self.data = OnboardingData()
