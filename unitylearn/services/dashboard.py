"""
대시보드 통계와 학습 기록.

레벨 체계가 두 가지라서 주의:
  - 퀴즈/진단 레벨   beginner / intermediate / advanced
  - 사용자 레벨      Beginner / Intermediate / Advanced / Expert / Master

시도 시각은 DB 에 UTC 로 저장되고, 날짜・주 단위 집계는 tz (기본: 서버
로컬 시간대) 로 바꾼 뒤에 한다.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from unitylearn.domain.diagnostic_questions import DIAGNOSTIC_QUESTIONS, get_level_label
from unitylearn.domain.models import (
    ADVANCED, BEGINNER, INTERMEDIATE, LEVELS, ContinueLearning, DashboardStats,
    DiagnosticResult, RecommendedQuiz,
)
from unitylearn.services import cache
from unitylearn.services.db import (
    DiagnosticRecord, QuizAttempt, User, from_db_utc, get_session, init_db, to_db_utc,
)
from unitylearn.services.errors import AppError

logger = logging.getLogger(__name__)

USER_LEVELS = ("Beginner", "Intermediate", "Advanced", "Expert", "Master")

USER_LEVEL_DISPLAY_NAMES = {
    "Beginner": "입문자",
    "Intermediate": "초급자",
    "Advanced": "중급자",
    "Expert": "고급자",
    "Master": "마스터",
}

_QUIZ_TO_USER_LEVEL = {
    BEGINNER: "Beginner",
    INTERMEDIATE: "Intermediate",
    ADVANCED: "Advanced",
}

WEAK_MIN_ATTEMPTS = 3
WEAK_ACCURACY = 60

MAX_RECOMMENDATIONS = 5
MAX_WEAK_RECOMMENDATIONS = 3
CONTINUE_MAX_ATTEMPTS = 3   # 이어하기 진행률은 3회 시도를 100% 로 본다

DIAGNOSTIC_QUIZ_ID = "diagnostic"


def quiz_level_to_user_level(level: str) -> str:
    return _QUIZ_TO_USER_LEVEL.get(level, "Beginner")


def user_level_to_quiz_level(level: str) -> str:
    # Expert / Master 는 advanced 로 본다
    if level == "Beginner":
        return BEGINNER
    if level == "Intermediate":
        return INTERMEDIATE
    return ADVANCED


def week_start(today: dt.date) -> dt.datetime:
    """이번 주 월요일 00:00"""
    monday = today - dt.timedelta(days=today.weekday())
    return dt.datetime.combine(monday, dt.time.min)


def compute_streak(days: Iterable[dt.date], today: dt.date) -> int:
    """오늘 (또는 어제)에서 끝나는 연속 학습 일수"""
    seen: Set[dt.date] = set(days)
    if today in seen:
        cursor = today
    elif today - dt.timedelta(days=1) in seen:
        cursor = today - dt.timedelta(days=1)
    else:
        return 0
    streak = 0
    while cursor in seen:
        streak += 1
        cursor -= dt.timedelta(days=1)
    return streak


def analyze_weak_categories(per_category: Dict[str, Dict[str, int]]) -> List[str]:
    """3회 이상 시도했고 정확도가 60% 미만인 카테고리"""
    weak = []
    for name, p in per_category.items():
        attempts = p.get("attempts", 0)
        if attempts >= WEAK_MIN_ATTEMPTS:
            accuracy = p.get("correct", 0) / attempts * 100
            if accuracy < WEAK_ACCURACY:
                weak.append(name)
    return weak




def diagnostic_quiz_id(question_id: int) -> str:
    return f"{DIAGNOSTIC_QUIZ_ID}-{question_id}"


def quiz_title(quiz_id: str) -> str:
    if quiz_id == DIAGNOSTIC_QUIZ_ID:
        return "버그 진단 테스트"
    for q in DIAGNOSTIC_QUESTIONS:
        if diagnostic_quiz_id(q.id) == quiz_id:
            return q.scenario
    return quiz_id


def _category_progress(attempts: Iterable[QuizAttempt]) -> Dict[str, Dict[str, int]]:
    per_category: Dict[str, Dict[str, int]] = defaultdict(lambda: {"attempts": 0, "correct": 0})
    for a in attempts:
        if not a.category:
            continue
        per_category[a.category]["attempts"] += 1
        if a.is_correct:
            per_category[a.category]["correct"] += 1
    return per_category


def _load_user_attempts(user_id: int):
    init_db()
    with get_session() as db:
        user = db.get(User, user_id)
        if user is None:
            return None, []
        attempts = db.query(QuizAttempt).filter(QuizAttempt.user_id == user_id).all()
    return user, attempts


# ---- 기록 ----

def record_quiz_attempt(
    user_id: int,
    quiz_id: str,
    score: int,
    answers: Optional[Dict[str, str]] = None,
    is_correct: bool = False,
    category: Optional[str] = None,
    created_at: Optional[dt.datetime] = None,
) -> int:
    init_db()
    with get_session() as db:
        row = QuizAttempt(
            user_id=user_id,
            quiz_id=quiz_id,
            category=category,
            score=score,
            answers_json=json.dumps(answers or {}, ensure_ascii=False),
            is_correct=is_correct,
            completed=True,
        )
        if created_at is not None:
            row.created_at = to_db_utc(created_at)
        db.add(row)
        db.commit()
        row_id = row.id
    cache.invalidate(cache.DASHBOARD)
    return row_id


def record_diagnostic_result(user_id: int, result: DiagnosticResult) -> int:
    """
    진단 결과를 남기고 사용자 레벨을 추천 레벨로 맞춘다.
    답한 문제마다 퀴즈 시도도 한 건씩 쌓는다 (카테고리 = 문제 레벨).
    """
    levels = {q.id: q.level for q in DIAGNOSTIC_QUESTIONS}
    init_db()
    with get_session() as db:
        user = db.get(User, user_id)
        if user is None:
            raise AppError("USER_NOT_FOUND", "사용자를 찾을 수 없습니다.")
        for a in result.answers:
            db.add(QuizAttempt(
                user_id=user_id,
                quiz_id=diagnostic_quiz_id(a.question_id),
                category=levels.get(a.question_id),
                score=a.points,
                answers_json=json.dumps(a.to_dict()),
                is_correct=a.stage1_correct and a.stage2_correct,
                completed=True,
            ))
        row = DiagnosticRecord(
            user_id=user_id,
            score=result.score,
            total_questions=result.total_questions,
            correct_answers=result.correct_answers,
            recommended_level=result.recommended_level,
            breakdown_json=json.dumps([a.to_dict() for a in result.answers]),
        )
        db.add(row)
        user.level = quiz_level_to_user_level(result.recommended_level)
        db.commit()
        row_id = row.id
    logger.info("diagnostic recorded for user %s: %s", user_id, result.recommended_level)
    cache.invalidate(cache.DASHBOARD, cache.USERS)
    return row_id


def get_latest_diagnostic(user_id: int) -> Optional[DiagnosticRecord]:
    init_db()
    with get_session() as db:
        return (
            db.query(DiagnosticRecord)
            .filter(DiagnosticRecord.user_id == user_id)
            .order_by(DiagnosticRecord.created_at.desc(), DiagnosticRecord.id.desc())
            .first()
        )


# ---- 조회 ----

def get_dashboard_stats(
    user_id: int,
    today: Optional[dt.date] = None,
    tz: Optional[dt.tzinfo] = None,
) -> DashboardStats:
    today = today or dt.datetime.now(tz).date()
    user, attempts = _load_user_attempts(user_id)
    if user is None:
        raise AppError("USER_NOT_FOUND", "사용자를 찾을 수 없습니다.")

    total = len(attempts)
    correct = sum(1 for a in attempts if a.is_correct)
    accuracy = round(correct / total * 100, 1) if total else 0.0

    local_times = [from_db_utc(a.created_at, tz) for a in attempts if a.created_at]
    since = week_start(today)

    return DashboardStats(
        current_level=user.level,
        total_attempts=total,
        correct_count=correct,
        accuracy=accuracy,
        streak_days=compute_streak((t.date() for t in local_times), today),
        weekly_progress=sum(1 for t in local_times if t >= since),
        weak_categories=analyze_weak_categories(_category_progress(attempts)),
    )


def get_recommendations(user_id: int) -> List[RecommendedQuiz]:
    """
    아직 맞히지 못한 문제 중에서 최대 5개를 추천한다.
    취약 카테고리 문제를 먼저 (최대 3개), 남은 자리는 사용자 레벨에
    가까운 문제 순으로 채운다.
    """
    user, attempts = _load_user_attempts(user_id)
    if user is None:
        return []

    solved = {a.quiz_id for a in attempts if a.is_correct}
    weak = set(analyze_weak_categories(_category_progress(attempts)))
    open_questions = [q for q in DIAGNOSTIC_QUESTIONS if diagnostic_quiz_id(q.id) not in solved]

    picks: List[RecommendedQuiz] = []
    for q in open_questions:
        if len(picks) >= MAX_WEAK_RECOMMENDATIONS:
            break
        if q.level in weak:
            picks.append(RecommendedQuiz(
                id=diagnostic_quiz_id(q.id),
                title=q.scenario,
                category=q.level,
                reason=f'취약한 "{get_level_label(q.level)}" 카테고리의 문제입니다',
            ))

    target = LEVELS.index(user_level_to_quiz_level(user.level))
    picked = {p.id for p in picks}
    rest = sorted(
        (q for q in open_questions if diagnostic_quiz_id(q.id) not in picked),
        key=lambda q: abs(LEVELS.index(q.level) - target),
    )
    for q in rest[:MAX_RECOMMENDATIONS - len(picks)]:
        same_level = LEVELS.index(q.level) == target
        picks.append(RecommendedQuiz(
            id=diagnostic_quiz_id(q.id),
            title=q.scenario,
            category=q.level,
            reason="현재 레벨에 맞는 문제입니다" if same_level else "새로운 학습 주제를 탐색해보세요",
        ))
    return picks


def get_continue_learning(user_id: int) -> ContinueLearning:
    """가장 최근에 틀린 시도를 이어하기 대상으로 본다"""
    init_db()
    with get_session() as db:
        last = (
            db.query(QuizAttempt)
            .filter(QuizAttempt.user_id == user_id, QuizAttempt.is_correct.is_(False))
            .order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc())
            .first()
        )
        if last is None:
            return ContinueLearning(has_unfinished=False)
        tries = (
            db.query(QuizAttempt)
            .filter(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == last.quiz_id)
            .count()
        )
    return ContinueLearning(
        has_unfinished=True,
        last_quiz_id=last.quiz_id,
        last_quiz_title=quiz_title(last.quiz_id),
        progress_percent=min(tries / CONTINUE_MAX_ATTEMPTS * 100, 100.0),
    )


# 화면용 캐시 조회. 기록 함수들이 DASHBOARD 태그를 비운다
get_cached_dashboard_stats = cache.cached_query(cache.DASHBOARD, cache.USERS)(get_dashboard_stats)
get_cached_recommendations = cache.cached_query(cache.DASHBOARD, cache.USERS)(get_recommendations)
get_cached_continue_learning = cache.cached_query(cache.DASHBOARD)(get_continue_learning)
