import datetime as dt
import logging
import uuid

import streamlit as st

from unitylearn.domain.diagnostic_questions import get_level_description, get_level_label
from unitylearn.domain.models import GuestQuizResult
from unitylearn.services import config
from unitylearn.services.ai_feedback import gen_diagnostic_feedback
from unitylearn.services.auth import authenticate, create_user, get_user_profile
from unitylearn.services.dashboard import (
    USER_LEVEL_DISPLAY_NAMES, get_cached_continue_learning, get_cached_dashboard_stats,
    get_cached_recommendations, record_diagnostic_result,
)
from unitylearn.services.diagnostic import DiagnosticSession, Phase
from unitylearn.services.errors import AppError
from unitylearn.services.guest import GuestSessionStore, migrate_guest_data, record_guest_attempt
from unitylearn.services.local_storage import MemoryStorage, storage_for_client
from unitylearn.services.onboarding import INTEREST_CATEGORIES, OnboardingStore, generate_default_nickname
from unitylearn.services.progress_store import ProgressStore, ResultStore

config.configure_logging()
config.ensure_data_dirs()
logger = logging.getLogger("unitylearn.app")

st.set_page_config(page_title="UnityLearn", page_icon="🎮", layout="centered")

# -------------------------------
# 기기 식별 / 저장소
# -------------------------------
# 쿼리 파라미터 cid 로 기기를 식별 (새로고침해도 같은 로컬 저장소를 쓴다)
if "client_id" not in st.session_state:
    cid = st.query_params.get("cid")
    if not cid:
        cid = uuid.uuid4().hex
        st.query_params["cid"] = cid
    st.session_state.client_id = cid

if "_tab_storage" not in st.session_state:
    st.session_state._tab_storage = {}

local_storage = storage_for_client(st.session_state.client_id)
tab_storage = MemoryStorage(st.session_state._tab_storage)   # sessionStorage 대응

progress_store = ProgressStore(local_storage)
result_store = ResultStore(tab_storage)
guest_store = GuestSessionStore(local_storage)
onboarding_store = OnboardingStore(local_storage)

if "user_id" not in st.session_state:
    st.session_state.user_id = None
if "guest_mode" not in st.session_state:
    st.session_state.guest_mode = False
if "page" not in st.session_state:
    st.session_state.page = "diagnostic"


def current_user():
    uid = st.session_state.user_id
    return get_user_profile(uid) if uid is not None else None


# -------------------------------
# 진단 완료 처리
# -------------------------------
def _on_diagnostic_complete(result):
    uid = st.session_state.user_id
    if uid is not None:
        try:
            record_diagnostic_result(uid, result)
        except AppError as e:
            logger.warning("could not record diagnostic: %s", e.code)
        except Exception:
            logger.exception("could not record diagnostic for user %s", uid)
    elif st.session_state.guest_mode:
        session = guest_store.get() or guest_store.create()
        answers = {str(a.question_id): str(a.points) for a in result.answers}
        guest_store.increment_attempts()
        guest_store.save_quiz_result(GuestQuizResult(
            quiz_id="diagnostic",
            score=result.score,
            answers=answers,
            completed_at=dt.datetime.now(),
        ))
        try:
            record_guest_attempt(session.id, "diagnostic", result.score, answers)
        except Exception:
            logger.exception("could not record guest attempt for %s", session.id)
    st.session_state.page = "result"


def get_diagnostic() -> DiagnosticSession:
    if "diagnostic" not in st.session_state:
        st.session_state.diagnostic = DiagnosticSession(
            progress_store, result_store, on_complete=_on_diagnostic_complete
        )
    return st.session_state.diagnostic


def restart_diagnostic():
    result_store.clear()
    get_diagnostic().reset()
    st.session_state.page = "diagnostic"


# -------------------------------
# 사이드바: 로그인 / 회원가입 / 게스트
# -------------------------------
with st.sidebar:
    st.markdown("## 🎮 UnityLearn")
    user = current_user()
    if user:
        st.markdown(f"**{user['nickname'] or user['name']}** 님")
        st.caption(f"레벨: {USER_LEVEL_DISPLAY_NAMES.get(user['level'], user['level'])}")
        if st.button("로그아웃"):
            st.session_state.user_id = None
            st.rerun()
    else:
        tab_in, tab_up = st.tabs(["로그인", "회원가입"])
        with tab_in:
            with st.form("signin"):
                email = st.text_input("이메일")
                password = st.text_input("비밀번호", type="password")
                if st.form_submit_button("로그인", use_container_width=True):
                    u = authenticate(email, password)
                    if u:
                        st.session_state.user_id = u.id
                        st.session_state.guest_mode = False
                        st.rerun()
                    else:
                        st.error("이메일 또는 비밀번호가 올바르지 않습니다.")
        with tab_up:
            with st.form("signup"):
                name = st.text_input("이름")
                email_up = st.text_input("이메일", key="signup_email")
                pw1 = st.text_input("비밀번호", type="password", key="signup_pw1")
                pw2 = st.text_input("비밀번호 확인", type="password", key="signup_pw2")
                if st.form_submit_button("회원가입", use_container_width=True):
                    if pw1 != pw2:
                        st.error("비밀번호가 일치하지 않습니다.")
                    else:
                        try:
                            u = create_user(email_up, pw1, name)
                        except AppError as e:
                            st.error(e.message)
                        else:
                            outcome = migrate_guest_data(guest_store, u.id)
                            if outcome.success and outcome.migrated_count:
                                st.success(f"게스트 기록 {outcome.migrated_count}건을 옮겼습니다.")
                            elif not outcome.success:
                                st.warning(f"게스트 기록 이전 실패: {outcome.error}")
                            st.session_state.user_id = u.id
                            st.session_state.guest_mode = False
                            st.session_state.page = "onboarding"
                            st.rerun()

        st.divider()
        if not st.session_state.guest_mode:
            if st.button("게스트로 둘러보기", use_container_width=True):
                if guest_store.get() is None:
                    guest_store.create()
                st.session_state.guest_mode = True
                st.rerun()
        else:
            st.info(f"게스트 모드 · 남은 시도 {guest_store.remaining_attempts()}회")

    st.divider()
    pages = {"diagnostic": "버그 진단 테스트", "result": "진단 결과", "dashboard": "대시보드", "onboarding": "온보딩"}
    st.session_state.page = st.radio(
        "메뉴", list(pages), format_func=pages.get,
        index=list(pages).index(st.session_state.page),
    )


# -------------------------------
# 화면: 진단 테스트
# -------------------------------
def render_diagnostic():
    if (st.session_state.user_id is None and st.session_state.guest_mode
            and guest_store.is_limit_reached()):
        st.warning("게스트 시도 횟수를 모두 사용했습니다. 회원가입 후 계속 학습하세요.")
        return

    diag = get_diagnostic()
    if diag.phase is Phase.TERMINAL:
        st.success("테스트를 완료했습니다.")
        if st.button("결과 보기", type="primary"):
            st.session_state.page = "result"
            st.rerun()
        return

    st.title("🧠 버그 진단 테스트")
    st.caption("당신의 Unity 디버깅 능력을 평가합니다")
    if diag.resumed and diag.current_question_index + diag.current_stage > 1:
        st.info("이전에 풀던 테스트를 이어서 진행합니다.")

    done = diag.current_question_index * 2 + (diag.current_stage - 1)
    st.progress(done / (diag.total_questions * 2),
                text=f"문제 {diag.current_question_index + 1} / {diag.total_questions} · {diag.current_stage}단계")

    q = diag.current_question
    with st.container(border=True):
        st.markdown(f"**[{get_level_label(q.level)}]** {q.scenario}")
        if q.error_message:
            st.code(q.error_message, language=None)
        st.markdown("**증상**")
        for s in q.symptoms:
            st.markdown(f"- {s}")

    stage = q.stage(diag.current_stage)
    st.markdown(f"#### {'원인 분석' if diag.current_stage == 1 else '해결 방법'}: {stage.question}")

    answered = diag.has_answered_current_stage
    for i, opt in enumerate(stage.options):
        st.button(
            f"{'ABCD'[i]}. {opt}",
            key=f"opt_{q.id}_{diag.current_stage}_{i}",
            disabled=answered,
            use_container_width=True,
            on_click=diag.select_answer,
            args=(i,),
        )

    if answered:
        if diag.is_current_stage_correct:
            st.success("정답입니다!")
        else:
            st.error(f"오답입니다. 정답: {'ABCD'[stage.correct]}. {stage.options[stage.correct]}")
        last = diag.current_stage == 2 and diag.current_question_index == diag.total_questions - 1
        label = "결과 보기" if last else ("해결 방법 단계로" if diag.current_stage == 1 else "다음 문제")
        st.button(label, type="primary", on_click=diag.advance)

    st.divider()
    st.button("🔄 다시 시작", on_click=restart_diagnostic, help="현재 진행 상황이 모두 초기화됩니다.")


# -------------------------------
# 화면: 결과
# -------------------------------
def render_result():
    result = result_store.load()
    if result is None:
        st.info("진단 테스트를 완료하지 않았거나 결과가 만료되었습니다.")
        if st.button("테스트 시작하기", type="primary"):
            restart_diagnostic()
            st.rerun()
        return

    st.title("🏆 테스트 완료!")
    c1, c2, c3 = st.columns(3)
    c1.metric("점수", f"{result.score} / {result.max_score}")
    c2.metric("완벽 정답", f"{result.correct_answers} / {result.total_questions}")
    c3.metric("정답률", f"{round(result.percentage)}%")

    st.subheader(f"추천 레벨: {get_level_label(result.recommended_level)}")
    st.write(get_level_description(result.recommended_level))

    with st.expander("문제별 결과"):
        for a in result.answers:
            s1 = "✅" if a.stage1_correct else "❌"
            s2 = "✅" if a.stage2_correct else "❌"
            st.markdown(f"- 문제 {a.question_id}: 원인 {s1} · 해결 {s2} · {a.points}점")

    if st.button("🧠 AI 코멘트 보기", type="secondary"):
        fb = gen_diagnostic_feedback(result)
        with st.container(border=True):
            st.markdown(fb["summary"])
            for title, key in (("강점", "strengths"), ("약점", "weaknesses"), ("다음 학습", "next_actions")):
                if fb[key]:
                    st.markdown(f"**{title}**")
                    for x in fb[key]:
                        st.markdown(f"- {x}")

    if st.button("🔄 다시 테스트하기"):
        restart_diagnostic()
        st.rerun()


# -------------------------------
# 화면: 대시보드
# -------------------------------
def render_dashboard():
    uid = st.session_state.user_id
    if uid is None:
        st.info("대시보드는 로그인 후 이용할 수 있습니다.")
        return
    try:
        stats = get_cached_dashboard_stats(uid)
    except AppError as e:
        st.error(e.message)
        return

    st.title("📊 대시보드")

    cont = get_cached_continue_learning(uid)
    if cont.has_unfinished:
        with st.container(border=True):
            st.markdown(f"**이어서 학습하기** · {cont.last_quiz_title}")
            st.progress(cont.progress_percent / 100, text=f"{round(cont.progress_percent)}%")
            if st.button("진단 테스트로 이동", key="continue_btn"):
                st.session_state.page = "diagnostic"
                st.rerun()

    c1, c2, c3 = st.columns(3)
    c1.metric("현재 레벨", USER_LEVEL_DISPLAY_NAMES.get(stats.current_level, stats.current_level))
    c2.metric("정답률", f"{stats.accuracy}%")
    c3.metric("연속 학습", f"{stats.streak_days}일")
    c4, c5 = st.columns(2)
    c4.metric("총 시도", stats.total_attempts)
    c5.metric("이번 주", stats.weekly_progress)
    if stats.weak_categories:
        st.markdown("**취약 카테고리**")
        for c in stats.weak_categories:
            st.markdown(f"- {get_level_label(c)}")

    recs = get_cached_recommendations(uid)
    if recs:
        st.subheader("추천 문제")
        for r in recs:
            with st.container(border=True):
                st.markdown(f"**[{get_level_label(r.category)}]** {r.title}")
                st.caption(r.reason)


# -------------------------------
# 화면: 온보딩
# -------------------------------
def render_onboarding():
    st.title("👋 시작하기")
    if onboarding_store.is_completed():
        st.success("온보딩을 완료했습니다.")
        if st.button("온보딩 다시 하기"):
            onboarding_store.reset()
            st.rerun()
        return

    user = current_user()
    data = onboarding_store.data
    nickname = st.text_input(
        "닉네임",
        value=data.nickname or generate_default_nickname(user["email"] if user else None),
    )
    level = st.radio(
        "현재 실력", ("beginner", "intermediate", "advanced"),
        index=("beginner", "intermediate", "advanced").index(data.level),
        format_func=get_level_label, horizontal=True,
    )
    interests = st.multiselect("관심 분야", INTEREST_CATEGORIES, default=data.interests)

    c1, c2 = st.columns(2)
    if c1.button("완료", type="primary", use_container_width=True):
        onboarding_store.update_nickname(nickname)
        onboarding_store.update_level(level)
        onboarding_store.update_interests(interests)
        try:
            onboarding_store.complete(user["id"] if user else None)
        except AppError as e:
            st.error(e.message)
        else:
            st.session_state.page = "diagnostic"
            st.rerun()
    if c2.button("건너뛰기", use_container_width=True):
        onboarding_store.skip()
        st.session_state.page = "diagnostic"
        st.rerun()


_PAGES = {
    "diagnostic": render_diagnostic,
    "result": render_result,
    "dashboard": render_dashboard,
    "onboarding": render_onboarding,
}
_PAGES[st.session_state.page]()
