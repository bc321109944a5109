"""
진단 테스트 세션 컨트롤러.

UI 와 무관한 상태 머신이며, 화면은 이벤트 (select_answer / advance / reset)를
넘기고 현재 상태를 그리기만 한다. 상태가 바뀔 때마다 진행 상황을 저장소에
그대로 써 넣고(write-through), 종료 상태에서는 대신 저장소를 비운다.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Optional, Sequence

from unitylearn.domain.diagnostic_questions import DIAGNOSTIC_QUESTIONS
from unitylearn.domain.models import (
    UNANSWERED, Answer, DiagnosticResult, Question, QuestionTime, SessionProgress,
)
from unitylearn.services.grader import calculate_result
from unitylearn.services.progress_store import ProgressStore, ResultStore, now_ms

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    ANSWERING_STAGE_1 = "answering_stage_1"
    ANSWERING_STAGE_2 = "answering_stage_2"
    TERMINAL = "terminal"


class DiagnosticSession:
    def __init__(
        self,
        progress_store: ProgressStore,
        result_store: Optional[ResultStore] = None,
        questions: Sequence[Question] = DIAGNOSTIC_QUESTIONS,
        clock: Callable[[], int] = now_ms,
        on_complete: Optional[Callable[[DiagnosticResult], None]] = None,
    ):
        if not questions:
            raise ValueError("question bank is empty")
        self.progress_store = progress_store
        self.result_store = result_store
        self.questions = tuple(questions)
        self.clock = clock
        self.on_complete = on_complete

        self._index = 0
        self._stage = 1
        self._answers: Dict[int, Answer] = {}
        self._times: Dict[int, QuestionTime] = {}
        self._start_time = clock()
        self._complete = False
        self._result: Optional[DiagnosticResult] = None
        self.resumed = self._restore()

    # ---- 복원 ----

    def _restore(self) -> bool:
        saved = self.progress_store.load()
        if saved is None:
            return False
        if not 0 <= saved.current_question_index < len(self.questions):
            logger.info("stored question index %s out of range, starting over",
                        saved.current_question_index)
            self.progress_store.clear()
            return False
        self._index = saved.current_question_index
        self._stage = saved.current_stage
        self._answers = dict(saved.answers)
        self._times = dict(saved.question_times)
        self._start_time = saved.start_time
        return True

    # ---- 조회 ----

    @property
    def phase(self) -> Phase:
        if self._complete:
            return Phase.TERMINAL
        return Phase.ANSWERING_STAGE_1 if self._stage == 1 else Phase.ANSWERING_STAGE_2

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question_index(self) -> int:
        return self._index

    @property
    def current_stage(self) -> int:
        return self._stage

    @property
    def current_question(self) -> Question:
        return self.questions[self._index]

    @property
    def answers(self) -> Dict[int, Answer]:
        return {k: Answer(v.stage1, v.stage2) for k, v in self._answers.items()}

    @property
    def current_answer(self) -> Optional[Answer]:
        return self._answers.get(self.current_question.id)

    @property
    def has_answered_current_stage(self) -> bool:
        answer = self.current_answer
        return answer is not None and answer.get(self._stage) >= 0

    @property
    def is_current_stage_correct(self) -> bool:
        if not self.has_answered_current_stage:
            return False
        stage = self.current_question.stage(self._stage)
        return self.current_answer.get(self._stage) == stage.correct

    @property
    def result(self) -> Optional[DiagnosticResult]:
        return self._result

    @property
    def progress(self) -> SessionProgress:
        return SessionProgress(
            current_question_index=self._index,
            current_stage=self._stage,
            answers=self.answers,
            start_time=self._start_time,
            question_times={k: QuestionTime(v.stage1, v.stage2) for k, v in self._times.items()},
        )

    def elapsed_ms(self) -> int:
        return self.clock() - self._start_time

    # ---- 이벤트 ----

    def select_answer(self, option_index: int) -> None:
        if self._complete:
            return
        qid = self.current_question.id
        answer = self._answers.get(qid) or Answer(UNANSWERED, UNANSWERED)
        if self._stage == 1:
            answer = Answer(option_index, answer.stage2)
        else:
            answer = Answer(answer.stage1, option_index)
        self._answers[qid] = answer
        self._record_time(qid)
        self._persist()

    def advance(self) -> Phase:
        if self._complete:
            return Phase.TERMINAL
        if self._stage == 1:
            self._stage = 2
            self._persist()
        elif self._index < len(self.questions) - 1:
            self._index += 1
            self._stage = 1
            self._persist()
        else:
            self._finish()
        return self.phase

    def reset(self) -> None:
        self.progress_store.clear()
        self._index = 0
        self._stage = 1
        self._answers = {}
        self._times = {}
        self._start_time = self.clock()
        self._complete = False
        self._result = None

    # ---- 내부 ----

    def _record_time(self, qid: int) -> None:
        # 문항 시작 시각 = 시작 시각 + 다른 문항들에 기록된 시간의 합
        now = self.clock()
        spent_elsewhere = sum(t.total for k, t in self._times.items() if k != qid)
        question_start = self._start_time + spent_elsewhere
        existing = self._times.get(qid) or QuestionTime()
        if self._stage == 1:
            self._times[qid] = QuestionTime(now - question_start, existing.stage2)
        else:
            self._times[qid] = QuestionTime(existing.stage1, now - question_start - existing.stage1)

    def _persist(self) -> None:
        self.progress_store.save(self.progress)

    def _finish(self) -> None:
        self._complete = True
        self._result = calculate_result(self._answers, self.questions)
        if self.result_store is not None:
            self.result_store.save(self._result)
        self.progress_store.clear()
        logger.info("diagnostic finished: score=%s level=%s",
                    self._result.score, self._result.recommended_level)
        if self.on_complete is not None:
            # 콜백 실패는 기록만 하고 종료 상태는 유지
            try:
                self.on_complete(self._result)
            except Exception:
                logger.exception("diagnostic completion callback failed")
