from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# 숙련도 레벨 (정렬 순서 그대로)
BEGINNER = "beginner"
INTERMEDIATE = "intermediate"
ADVANCED = "advanced"
LEVELS: Tuple[str, ...] = (BEGINNER, INTERMEDIATE, ADVANCED)

UNANSWERED = -1
POINTS_PER_STAGE = 10
PERFECT_BONUS = 5
MAX_POINTS_PER_QUESTION = 2 * POINTS_PER_STAGE + PERFECT_BONUS


@dataclass(frozen=True)
class Stage:
    question: str               # 단계 질문 (원인 분석 / 해결 방법)
    options: Tuple[str, ...]    # 항상 4개
    correct: int                # 0~3


@dataclass(frozen=True)
class Question:
    id: int
    level: str                  # beginner / intermediate / advanced
    scenario: str
    symptoms: Tuple[str, ...]
    stage1: Stage
    stage2: Stage
    error_message: Optional[str] = None

    def stage(self, n: int) -> Stage:
        return self.stage1 if n == 1 else self.stage2


@dataclass
class Answer:
    stage1: int = UNANSWERED
    stage2: int = UNANSWERED

    def get(self, stage: int) -> int:
        return self.stage1 if stage == 1 else self.stage2

    def to_dict(self) -> Dict[str, int]:
        return {"stage1": self.stage1, "stage2": self.stage2}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Answer":
        return cls(stage1=_as_int(data["stage1"]), stage2=_as_int(data["stage2"]))


@dataclass
class QuestionTime:
    stage1: int = 0             # ms
    stage2: int = 0             # ms

    @property
    def total(self) -> int:
        return self.stage1 + self.stage2

    def to_dict(self) -> Dict[str, int]:
        return {"stage1": self.stage1, "stage2": self.stage2}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionTime":
        return cls(stage1=_as_int(data["stage1"]), stage2=_as_int(data["stage2"]))


@dataclass
class SessionProgress:
    """진행 중인 진단 테스트의 스냅샷 (로컬 저장소에 그대로 직렬화)"""
    current_question_index: int = 0
    current_stage: int = 1
    answers: Dict[int, Answer] = field(default_factory=dict)
    start_time: int = 0         # epoch ms
    question_times: Dict[int, QuestionTime] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentQuestionIndex": self.current_question_index,
            "currentStage": self.current_stage,
            "answers": {str(k): v.to_dict() for k, v in self.answers.items()},
            "startTime": self.start_time,
            "questionTimes": {str(k): v.to_dict() for k, v in self.question_times.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionProgress":
        """
        JSON 객체에서 복원. 형태가 맞지 않으면 KeyError / TypeError / ValueError.
        질문 id 키는 JSON 규칙상 문자열이므로 int 로 되돌린다.
        """
        stage = _as_int(data["currentStage"])
        if stage not in (1, 2):
            raise ValueError(f"invalid currentStage: {stage}")
        return cls(
            current_question_index=_as_int(data["currentQuestionIndex"]),
            current_stage=stage,
            answers={int(k): Answer.from_dict(v) for k, v in dict(data["answers"]).items()},
            start_time=_as_int(data["startTime"]),
            question_times={
                int(k): QuestionTime.from_dict(v)
                for k, v in dict(data.get("questionTimes") or {}).items()
            },
        )


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: int
    stage1_correct: bool
    stage2_correct: bool
    points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "stage1Correct": self.stage1_correct,
            "stage2Correct": self.stage2_correct,
            "points": self.points,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionOutcome":
        return cls(
            question_id=_as_int(data["questionId"]),
            stage1_correct=bool(data["stage1Correct"]),
            stage2_correct=bool(data["stage2Correct"]),
            points=_as_int(data["points"]),
        )


@dataclass(frozen=True)
class DiagnosticResult:
    score: int
    total_questions: int
    correct_answers: int
    recommended_level: str
    answers: Tuple[QuestionOutcome, ...] = ()

    @property
    def max_score(self) -> int:
        return self.total_questions * MAX_POINTS_PER_QUESTION

    @property
    def percentage(self) -> float:
        if self.max_score == 0:
            return 0.0
        return self.score / self.max_score * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "recommendedLevel": self.recommended_level,
            "answers": [a.to_dict() for a in self.answers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosticResult":
        level = data["recommendedLevel"]
        if level not in LEVELS:
            raise ValueError(f"invalid recommendedLevel: {level!r}")
        return cls(
            score=_as_int(data["score"]),
            total_questions=_as_int(data["totalQuestions"]),
            correct_answers=_as_int(data["correctAnswers"]),
            recommended_level=level,
            answers=tuple(QuestionOutcome.from_dict(a) for a in data.get("answers") or []),
        )


# ▼ 게스트 모드 (로컬 저장소)
@dataclass
class GuestQuizResult:
    quiz_id: str
    score: int
    answers: Dict[str, str]
    completed_at: dt.datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quizId": self.quiz_id,
            "score": self.score,
            "answers": dict(self.answers),
            "completedAt": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuestQuizResult":
        return cls(
            quiz_id=str(data["quizId"]),
            score=_as_int(data["score"]),
            answers={str(k): str(v) for k, v in dict(data.get("answers") or {}).items()},
            completed_at=dt.datetime.fromisoformat(data["completedAt"]),
        )


@dataclass
class GuestSession:
    id: str
    created_at: dt.datetime
    attempts: int
    max_attempts: int
    quiz_results: List[GuestQuizResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at.isoformat(),
            "attempts": self.attempts,
            "maxAttempts": self.max_attempts,
            "quizResults": [r.to_dict() for r in self.quiz_results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GuestSession":
        return cls(
            id=str(data["id"]),
            created_at=dt.datetime.fromisoformat(data["createdAt"]),
            attempts=_as_int(data["attempts"]),
            max_attempts=_as_int(data["maxAttempts"]),
            quiz_results=[GuestQuizResult.from_dict(r) for r in data.get("quizResults") or []],
        )


# ▼ 온보딩
@dataclass
class OnboardingData:
    nickname: str = ""
    level: str = BEGINNER
    interests: List[str] = field(default_factory=list)
    completed: bool = False
    completed_at: Optional[str] = None   # ISO-8601

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "nickname": self.nickname,
            "level": self.level,
            "interests": list(self.interests),
            "completed": self.completed,
        }
        if self.completed_at:
            out["completedAt"] = self.completed_at
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OnboardingData":
        return cls(
            nickname=str(data.get("nickname") or ""),
            level=data.get("level") if data.get("level") in LEVELS else BEGINNER,
            interests=[str(x) for x in data.get("interests") or []],
            completed=bool(data.get("completed", False)),
            completed_at=data.get("completedAt"),
        )


@dataclass
class DashboardStats:
    current_level: str
    total_attempts: int
    correct_count: int
    accuracy: float
    streak_days: int
    weekly_progress: int
    weak_categories: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecommendedQuiz:
    id: str
    title: str
    category: str
    reason: str   # 추천 이유


@dataclass(frozen=True)
class ContinueLearning:
    has_unfinished: bool
    last_quiz_id: Optional[str] = None
    last_quiz_title: Optional[str] = None
    progress_percent: float = 0.0


def _as_int(v: Any) -> int:
    # bool 은 int 의 서브클래스라서 명시적으로 거른다
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise TypeError(f"expected number, got {type(v).__name__}")
    return int(v)
