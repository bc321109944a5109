from unittest import mock

import pytest

from unitylearn.domain.diagnostic_questions import DIAGNOSTIC_QUESTIONS
from unitylearn.domain.models import SessionProgress
from unitylearn.services import config, grader
from unitylearn.services.diagnostic import DiagnosticSession, Phase
from unitylearn.services.progress_store import MS_PER_HOUR, ProgressStore, ResultStore


@pytest.fixture
def stores(storage, clock):
    return ProgressStore(storage, clock=clock), ResultStore(storage)


def _session(stores, clock, **kw):
    progress, results = stores
    return DiagnosticSession(progress, results, clock=clock, **kw)


def _answer_all_correctly(session):
    while not session.is_complete:
        q = session.current_question
        session.select_answer(q.stage(session.current_stage).correct)
        session.advance()


def test_initial_state(stores, clock):
    s = _session(stores, clock)
    assert s.phase is Phase.ANSWERING_STAGE_1
    assert s.current_question_index == 0
    assert s.current_stage == 1
    assert s.answers == {}
    assert not s.is_complete
    assert not s.resumed
    assert s.total_questions == len(DIAGNOSTIC_QUESTIONS)


def test_nothing_written_before_first_interaction(storage, stores, clock):
    _session(stores, clock)
    assert storage.get_item(config.PROGRESS_STORAGE_KEY) is None


def test_select_then_advance_through_stages(stores, clock):
    s = _session(stores, clock)
    q = s.current_question

    s.select_answer(q.stage1.correct)
    assert s.phase is Phase.ANSWERING_STAGE_1
    assert s.has_answered_current_stage
    assert s.is_current_stage_correct
    assert s.answers[q.id].stage1 == q.stage1.correct
    assert s.answers[q.id].stage2 == -1

    assert s.advance() is Phase.ANSWERING_STAGE_2
    assert not s.has_answered_current_stage

    s.select_answer(3)
    assert not s.is_current_stage_correct
    assert s.advance() is Phase.ANSWERING_STAGE_1
    assert s.current_question_index == 1
    assert s.current_stage == 1


def test_every_mutation_is_written_through(stores, clock):
    progress_store, _ = stores
    s = _session(stores, clock)

    s.select_answer(2)
    assert progress_store.load() == s.progress
    s.advance()
    assert progress_store.load().current_stage == 2
    s.select_answer(0)
    assert progress_store.load().answers[1].stage2 == 0
    s.advance()
    assert progress_store.load().current_question_index == 1


def test_resume_from_saved_progress(stores, clock):
    s = _session(stores, clock)
    s.select_answer(1)
    s.advance()
    s.select_answer(0)
    s.advance()
    s.select_answer(2)

    clock.advance(MS_PER_HOUR)
    again = _session(stores, clock)
    assert again.resumed
    assert again.current_question_index == 1
    assert again.current_stage == 1
    assert again.answers == s.answers
    assert again.progress.start_time == s.progress.start_time


def test_expired_progress_starts_fresh(stores, clock):
    s = _session(stores, clock)
    s.select_answer(1)
    s.advance()

    clock.advance(25 * MS_PER_HOUR)
    again = _session(stores, clock)
    assert not again.resumed
    assert again.current_question_index == 0
    assert again.current_stage == 1
    assert again.answers == {}
    assert again.progress.start_time == clock()


def test_out_of_range_index_starts_fresh(storage, stores, clock):
    progress_store, _ = stores
    progress_store.save(SessionProgress(current_question_index=42, start_time=clock()))
    s = _session(stores, clock)
    assert not s.resumed
    assert s.current_question_index == 0
    assert storage.get_item(config.PROGRESS_STORAGE_KEY) is None


def test_completion_runs_once(storage, clock):
    progress_store = ProgressStore(storage, clock=clock)
    result_store = ResultStore(storage)
    on_complete = mock.Mock()
    s = DiagnosticSession(progress_store, result_store, clock=clock, on_complete=on_complete)

    with mock.patch.object(progress_store, "clear", wraps=progress_store.clear) as clear, \
            mock.patch("unitylearn.services.diagnostic.calculate_result",
                       wraps=grader.calculate_result) as calc:
        _answer_all_correctly(s)
        assert s.phase is Phase.TERMINAL
        assert s.advance() is Phase.TERMINAL
        assert s.advance() is Phase.TERMINAL

        assert calc.call_count == 1
        assert clear.call_count == 1
    on_complete.assert_called_once_with(s.result)

    assert s.result.score == 125
    assert s.result.recommended_level == "advanced"
    assert result_store.load() == s.result
    assert storage.get_item(config.PROGRESS_STORAGE_KEY) is None


def test_terminal_does_not_write_progress(counting_storage, clock):
    s = DiagnosticSession(ProgressStore(counting_storage, clock=clock), clock=clock)
    for _ in range(len(DIAGNOSTIC_QUESTIONS) * 2 - 1):
        s.advance()
    writes = counting_storage.sets
    s.advance()
    assert s.is_complete
    assert counting_storage.sets == writes
    s.select_answer(1)
    assert counting_storage.sets == writes


def test_completion_without_answers_scores_zero(stores, clock):
    s = _session(stores, clock)
    for _ in range(len(DIAGNOSTIC_QUESTIONS) * 2):
        s.advance()
    assert s.is_complete
    assert s.result.score == 0
    assert s.result.recommended_level == "beginner"
    assert s.result.answers == ()


def test_reset_from_any_state(storage, stores, clock):
    s = _session(stores, clock)
    s.select_answer(1)
    s.advance()
    s.select_answer(0)
    clock.advance(5000)

    s.reset()
    assert s.phase is Phase.ANSWERING_STAGE_1
    assert s.current_question_index == 0
    assert s.answers == {}
    assert s.progress.start_time == clock()
    assert storage.get_item(config.PROGRESS_STORAGE_KEY) is None

    _answer_all_correctly(s)
    s.reset()
    assert not s.is_complete
    assert s.result is None


def test_stage_times(stores, clock):
    s = _session(stores, clock)
    clock.advance(3000)
    s.select_answer(1)
    s.advance()
    clock.advance(2000)
    s.select_answer(0)
    times = s.progress.question_times[1]
    assert times.stage1 == 3000
    assert times.stage2 == 2000

    s.advance()
    clock.advance(4000)
    s.select_answer(1)
    assert s.progress.question_times[2].stage1 == 4000
    assert s.elapsed_ms() == 9000


def test_storage_failure_keeps_memory_state(failing_storage, clock):
    s = DiagnosticSession(ProgressStore(failing_storage, clock=clock), clock=clock)
    s.select_answer(1)
    s.advance()
    assert s.current_stage == 2
    assert s.answers[1].stage1 == 1


def test_empty_bank_rejected(stores, clock):
    with pytest.raises(ValueError):
        _session(stores, clock, questions=())


def test_failing_completion_callback_still_terminates(storage, clock, caplog):
    result_store = ResultStore(storage)
    on_complete = mock.Mock(side_effect=RuntimeError("database is locked"))
    s = DiagnosticSession(ProgressStore(storage, clock=clock), result_store,
                          clock=clock, on_complete=on_complete)

    _answer_all_correctly(s)

    assert s.phase is Phase.TERMINAL
    on_complete.assert_called_once()
    assert result_store.load() == s.result
    assert storage.get_item(config.PROGRESS_STORAGE_KEY) is None
    assert "completion callback failed" in caplog.text
