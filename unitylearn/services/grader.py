from typing import List, Mapping, Sequence

from unitylearn.domain.diagnostic_questions import DIAGNOSTIC_QUESTIONS
from unitylearn.domain.models import (
    ADVANCED, BEGINNER, INTERMEDIATE, MAX_POINTS_PER_QUESTION, PERFECT_BONUS,
    POINTS_PER_STAGE, Answer, DiagnosticResult, Question, QuestionOutcome,
)

ADVANCED_THRESHOLD = 80
INTERMEDIATE_THRESHOLD = 50


def recommend_level(percentage: float) -> str:
    if percentage >= ADVANCED_THRESHOLD:
        return ADVANCED
    if percentage >= INTERMEDIATE_THRESHOLD:
        return INTERMEDIATE
    return BEGINNER


def score_answer(question: Question, answer: Answer) -> QuestionOutcome:
    stage1_ok = answer.stage1 == question.stage1.correct
    stage2_ok = answer.stage2 == question.stage2.correct
    points = 0
    if stage1_ok:
        points += POINTS_PER_STAGE
    if stage2_ok:
        points += POINTS_PER_STAGE
    if stage1_ok and stage2_ok:
        points += PERFECT_BONUS  # 두 단계 모두 정답 보너스
    return QuestionOutcome(
        question_id=question.id,
        stage1_correct=stage1_ok,
        stage2_correct=stage2_ok,
        points=points,
    )


def calculate_result(
    answers: Mapping[int, Answer],
    questions: Sequence[Question] = DIAGNOSTIC_QUESTIONS,
) -> DiagnosticResult:
    """
    질문 id → Answer 맵을 채점한다.
    답이 없는 문제는 합계와 상세 목록 양쪽에서 제외 (감점 없음).
    만점은 은행 전체 문제 수 기준이다.
    """
    outcomes: List[QuestionOutcome] = []
    total = 0
    correct = 0
    for q in questions:
        answer = answers.get(q.id)
        if answer is None:
            continue
        outcome = score_answer(q, answer)
        if outcome.stage1_correct and outcome.stage2_correct:
            correct += 1
        total += outcome.points
        outcomes.append(outcome)

    max_score = len(questions) * MAX_POINTS_PER_QUESTION
    percentage = (total / max_score * 100) if max_score else 0.0

    return DiagnosticResult(
        score=total,
        total_questions=len(questions),
        correct_answers=correct,
        recommended_level=recommend_level(percentage),
        answers=tuple(outcomes),
    )
