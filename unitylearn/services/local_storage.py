# services/local_storage.py
# 브라우저 localStorage / sessionStorage 와 같은 문자열 key-value 저장소
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, MutableMapping, Optional, Protocol

from unitylearn.services import config

logger = logging.getLogger(__name__)

# 같은 파일을 쓰는 FileStorage 들이 공유하는 잠금 (경로별).
# Streamlit 세션들은 한 프로세스의 스레드이므로 프로세스 안에서만 보장한다
_path_locks: Dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _path_locks_guard:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.Lock()
        return lock


class LocalStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """dict 기반. st.session_state 를 넘기면 탭 단위 sessionStorage 처럼 동작"""

    def __init__(self, backing: Optional[MutableMapping[str, str]] = None):
        self._data: MutableMapping[str, str] = backing if backing is not None else {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """
    클라이언트(기기) 하나당 JSON 파일 하나.
    쓰기는 임시 파일 → os.replace 로 원자적으로 덮어쓴다.
    set_item / remove_item 은 디스크 오류 시 OSError 를 그대로 올린다.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = _lock_for(self.path)

    def _read_all(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("storage read failed (%s): %s", self.path, e)
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("storage file is corrupt, ignoring: %s", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)


_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


def storage_for_client(client_id: str, base_dir: Optional[Path] = None) -> FileStorage:
    safe = _SAFE_ID.sub("_", client_id or "anonymous")
    return FileStorage(Path(base_dir or config.STORAGE_DIR) / f"{safe}.json")
