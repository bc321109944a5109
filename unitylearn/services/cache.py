"""
조회 캐시.

읽기 함수는 st.cache_data 로 감싸고 태그를 붙여 둔다. 쓰기 쪽 서비스는
invalidate() 로 해당 태그의 캐시를 모두 비운다.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

import streamlit as st

from unitylearn.services import config

logger = logging.getLogger(__name__)

USERS = "users"
DASHBOARD = "dashboard"

_registry: Dict[str, List[Any]] = defaultdict(list)


def cached_query(*tags: str, ttl: int = config.CACHE_TTL_SECONDS) -> Callable:
    def deco(fn):
        cached = st.cache_data(ttl=ttl, show_spinner=False)(fn)
        for tag in tags:
            _registry[tag].append(cached)
        return cached
    return deco


def invalidate(*tags: str) -> None:
    for tag in tags:
        for fn in _registry.get(tag, ()):
            fn.clear()
    logger.debug("cache invalidated: %s", ", ".join(tags))


def invalidate_all() -> None:
    invalidate(*list(_registry))
