import json
import logging
import re
from typing import Any, Dict, List

from openai import OpenAI

from unitylearn.domain.diagnostic_questions import DIAGNOSTIC_QUESTIONS, get_level_description, get_level_label
from unitylearn.domain.models import DiagnosticResult
from unitylearn.services.config import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL

logger = logging.getLogger(__name__)

# --- OpenAI 클라이언트 (키가 없으면 None → 규칙 기반으로 대체) ---
_openai_client = None
if OPENAI_API_KEY:
    # base_url 이 빈 문자열이면 None 을 넘겨 공식 엔드포인트 사용
    _openai_client = OpenAI(api_key=OPENAI_API_KEY, base_url=(OPENAI_BASE_URL or None))

SYSTEM_PROMPT = """당신은 Unity 디버깅 강사입니다.
진단 테스트 결과를 보고 반드시 다음 JSON 형식만 한국어로 반환하세요:
{
  "summary": "1-2문장 총평 (줄바꿈 없음)",
  "strengths": ["짧은 항목"],
  "weaknesses": ["짧은 항목"],
  "next_actions": ["다음에 할 학습 1문장"]
}
채점 방식: 원인 분석 10점, 해결 방법 10점, 두 단계 모두 정답이면 보너스 5점.
JSON 이외의 문자는 절대 포함하지 마세요.
"""

_TOPIC_BY_QUESTION = {q.id: q.scenario for q in DIAGNOSTIC_QUESTIONS}


def _uniq(xs: List[str]) -> List[str]:
    return list(dict.fromkeys(xs))


def _fallback_rule_based(result: DiagnosticResult) -> Dict[str, Any]:
    strengths, weaknesses, next_actions = [], [], []
    for a in result.answers:
        topic = _TOPIC_BY_QUESTION.get(a.question_id, f"문제 {a.question_id}")
        if a.stage1_correct and a.stage2_correct:
            strengths.append(f"원인과 해결책 모두 정확: {topic}")
        elif a.stage1_correct:
            weaknesses.append(f"원인은 찾았지만 해결책이 부정확: {topic}")
        elif a.stage2_correct:
            weaknesses.append(f"해결책은 맞았지만 원인 분석이 부족: {topic}")
        else:
            weaknesses.append(f"다시 복습 필요: {topic}")

    stage1_misses = sum(1 for a in result.answers if not a.stage1_correct)
    stage2_misses = sum(1 for a in result.answers if not a.stage2_correct)
    if stage1_misses > stage2_misses:
        next_actions.append("에러 메시지와 증상을 먼저 정리한 뒤 원인을 추론하는 연습을 하세요.")
    elif stage2_misses > stage1_misses:
        next_actions.append("원인별 표준 해결 패턴 (공식 문서 권장 방법)을 정리해 두세요.")

    level = result.recommended_level
    next_actions.append(get_level_description(level))
    return {
        "summary": (
            f"{result.total_questions}문제 중 {result.correct_answers}문제 완벽 정답, "
            f"{result.score}/{result.max_score}점 ({round(result.percentage)}%). "
            f"추천 레벨은 {get_level_label(level)}입니다."
        ),
        "strengths": _uniq(strengths)[:5],
        "weaknesses": _uniq(weaknesses)[:5],
        "next_actions": _uniq(next_actions)[:5],
    }


def _to_ui_schema(data: Dict[str, Any], fallback: Dict[str, Any]) -> Dict[str, Any]:
    def _list(key):
        v = data.get(key)
        if isinstance(v, list):
            return [str(x) for x in v if str(x).strip()][:5]
        return fallback[key]

    return {
        "summary": (str(data.get("summary") or "")).strip() or fallback["summary"],
        "strengths": _list("strengths"),
        "weaknesses": _list("weaknesses"),
        "next_actions": _list("next_actions"),
    }


def gen_diagnostic_feedback(result: DiagnosticResult) -> Dict[str, Any]:
    fallback = _fallback_rule_based(result)
    if _openai_client is None or not result.answers:
        return fallback

    user_prompt = (
        "다음 진단 테스트 결과를 분석해 주세요.\n"
        f"{json.dumps(result.to_dict(), ensure_ascii=False)}\n"
        "반드시 위의 JSON 형식만 반환하세요."
    )
    try:
        resp = _openai_client.chat.completions.create(
            model=OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.2,
        )
        content = (resp.choices[0].message.content or "").strip()
        m = re.search(r"\{.*\}", content, flags=re.S)
        data = json.loads(m.group(0) if m else content)
        if not isinstance(data, dict):
            return fallback
        return _to_ui_schema(data, fallback)
    except Exception:
        logger.warning("AI feedback failed, using rule-based comment", exc_info=True)
        return fallback
