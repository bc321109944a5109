import pytest

from unitylearn.services import cache, db
from unitylearn.services.local_storage import MemoryStorage


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FailingStorage(MemoryStorage):
    """읽기는 되지만 쓰기/삭제는 항상 실패 (용량 초과 등)"""

    def set_item(self, key, value):
        raise OSError("quota exceeded")

    def remove_item(self, key):
        raise OSError("storage unavailable")


class CountingStorage(MemoryStorage):
    def __init__(self):
        super().__init__()
        self.sets = 0
        self.removes = 0

    def set_item(self, key, value):
        self.sets += 1
        super().set_item(key, value)

    def remove_item(self, key):
        self.removes += 1
        super().remove_item(key)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def failing_storage():
    return FailingStorage()


@pytest.fixture
def counting_storage():
    return CountingStorage()


@pytest.fixture
def database(tmp_path):
    db.configure(f"sqlite:///{(tmp_path / 'test.db').as_posix()}")
    db.init_db()
    yield
    db.configure(f"sqlite:///{(tmp_path / 'unused.db').as_posix()}")


@pytest.fixture(autouse=True)
def fresh_query_cache():
    cache.invalidate_all()
    yield
    cache.invalidate_all()
