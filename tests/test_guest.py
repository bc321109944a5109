import datetime as dt
import json

import pytest

from unitylearn.domain.models import GuestQuizResult
from unitylearn.services import config
from unitylearn.services.auth import create_user
from unitylearn.services.dashboard import get_cached_dashboard_stats
from unitylearn.services.db import GuestQuizAttempt, QuizAttempt, get_session
from unitylearn.services.errors import AppError
from unitylearn.services.guest import (
    GuestSessionStore, migrate_guest_attempts, migrate_guest_data, record_guest_attempt,
)


def _result(score=40):
    return GuestQuizResult(
        quiz_id="diagnostic",
        score=score,
        answers={"1": "25"},
        completed_at=dt.datetime(2026, 10, 1, 12, 0, 0),
    )


class TestGuestSessionStore:
    def test_no_session(self, storage):
        store = GuestSessionStore(storage, max_attempts=3)
        assert store.get() is None
        assert store.can_attempt()
        assert not store.is_limit_reached()
        assert store.remaining_attempts() == 3
        assert not store.increment_attempts()
        assert not store.has_data()

    def test_attempt_limit(self, storage):
        store = GuestSessionStore(storage, max_attempts=2)
        session = store.create()
        assert session.id.startswith("guest_")
        assert store.increment_attempts()
        assert store.remaining_attempts() == 1
        assert store.increment_attempts()
        assert store.is_limit_reached()
        assert not store.can_attempt()
        assert not store.increment_attempts()
        assert store.get().attempts == 2
        assert store.remaining_attempts() == 0

    def test_results_round_trip(self, storage):
        store = GuestSessionStore(storage)
        store.create()
        store.save_quiz_result(_result())
        session = store.get()
        assert session.quiz_results == [_result()]
        assert store.has_data()
        raw = json.loads(storage.get_item(config.GUEST_SESSION_KEY))
        assert raw["quizResults"][0]["quizId"] == "diagnostic"
        assert raw["maxAttempts"] == config.MAX_GUEST_ATTEMPTS

    def test_save_result_without_session_is_noop(self, storage):
        store = GuestSessionStore(storage)
        store.save_quiz_result(_result())
        assert store.get() is None

    def test_clear(self, storage):
        store = GuestSessionStore(storage)
        store.create()
        storage.set_item(config.GUEST_QUIZ_RESULTS_KEY, "[]")
        store.clear()
        store.clear()
        assert store.get() is None
        assert storage.get_item(config.GUEST_QUIZ_RESULTS_KEY) is None

    def test_malformed_session(self, storage):
        storage.set_item(config.GUEST_SESSION_KEY, "{]")
        assert GuestSessionStore(storage).get() is None

    def test_write_failure_is_logged(self, failing_storage, caplog):
        store = GuestSessionStore(failing_storage)
        store.create()
        store.clear()
        assert "failed to save guest session" in caplog.text


@pytest.mark.usefixtures("database")
class TestMigration:
    def test_migrate_attempts(self):
        user = create_user("guest@example.com", "password1", "게스트")
        record_guest_attempt("guest_1", "diagnostic", 80, {"1": "25"})
        record_guest_attempt("guest_1", "diagnostic", 95, {"1": "25"})
        record_guest_attempt("guest_other", "diagnostic", 10, {})

        assert migrate_guest_attempts("guest_1", user.id) == 2

        with get_session() as db:
            attempts = db.query(QuizAttempt).filter(QuizAttempt.user_id == user.id).all()
            remaining = db.query(GuestQuizAttempt).all()
        assert sorted(a.score for a in attempts) == [80, 95]
        assert all(a.completed for a in attempts)
        assert [g.guest_id for g in remaining] == ["guest_other"]

    def test_unknown_user(self):
        record_guest_attempt("guest_1", "diagnostic", 80, {})
        with pytest.raises(AppError) as exc:
            migrate_guest_attempts("guest_1", 4242)
        assert exc.value.code == "USER_NOT_FOUND"

    def test_no_guest_rows(self):
        user = create_user("empty@example.com", "password1", "빈")
        with pytest.raises(AppError) as exc:
            migrate_guest_attempts("guest_none", user.id)
        assert exc.value.code == "NO_GUEST_DATA"

    def test_client_migration_clears_local_data(self, storage):
        user = create_user("client@example.com", "password1", "클라")
        store = GuestSessionStore(storage)
        session = store.create()
        store.save_quiz_result(_result())
        record_guest_attempt(session.id, "diagnostic", 40, {"1": "25"})

        outcome = migrate_guest_data(store, user.id)
        assert outcome.success
        assert outcome.migrated_count == 1
        assert store.get() is None

    def test_client_migration_without_local_data(self, storage):
        outcome = migrate_guest_data(GuestSessionStore(storage), 1)
        assert outcome.success
        assert outcome.migrated_count == 0

    def test_client_migration_failure_keeps_local_data(self, storage):
        store = GuestSessionStore(storage)
        store.create()
        store.save_quiz_result(_result())

        outcome = migrate_guest_data(store, 4242)
        assert not outcome.success
        assert outcome.error == "User not found"
        assert store.has_data()

    def test_migration_refreshes_cached_stats(self):
        user = create_user("cached-guest@example.com", "password1", "캐시게스트")
        today = dt.date(2026, 10, 14)
        assert get_cached_dashboard_stats(user.id, today).total_attempts == 0

        record_guest_attempt("guest_c", "diagnostic", 80, {"1": "25"})
        migrate_guest_attempts("guest_c", user.id)
        assert get_cached_dashboard_stats(user.id, today).total_attempts == 1
