import json

import pytest

from unitylearn.services import cache
from unitylearn.services.auth import (
    authenticate, create_user, get_user_by_id, get_user_profile, hash_password, update_profile,
    verify_password,
)
from unitylearn.services.db import User, get_session
from unitylearn.services.errors import AppError

pytestmark = pytest.mark.usefixtures("database")


def test_hash_and_verify():
    h = hash_password("secret-123")
    assert h != "secret-123"
    assert verify_password("secret-123", h)
    assert not verify_password("wrong", h)
    assert not verify_password("secret-123", "not-a-hash")


def test_hash_rejects_empty():
    with pytest.raises(ValueError):
        hash_password("")


def test_create_and_authenticate():
    user = create_user(" Learner@Example.com ", "password1", "김유니티")
    assert user.id is not None
    assert user.email == "learner@example.com"
    assert user.level == "Beginner"

    assert authenticate("learner@example.com", "password1").id == user.id
    assert authenticate("LEARNER@example.com", "password1").id == user.id
    assert authenticate("learner@example.com", "nope") is None
    assert authenticate("ghost@example.com", "password1") is None


@pytest.mark.parametrize("email,password,name,code", [
    ("", "password1", "a", "EMAIL_REQUIRED"),
    ("not-an-email", "password1", "a", "INVALID_EMAIL"),
    ("a@b.co", "", "a", "PASSWORD_REQUIRED"),
    ("a@b.co", "short", "a", "PASSWORD_TOO_SHORT"),
    ("a@b.co", "password1", "  ", "NAME_REQUIRED"),
])
def test_create_user_validation(email, password, name, code):
    with pytest.raises(AppError) as exc:
        create_user(email, password, name)
    assert exc.value.code == code


def test_duplicate_email():
    create_user("dup@example.com", "password1", "one")
    with pytest.raises(AppError) as exc:
        create_user("DUP@example.com", "password2", "two")
    assert exc.value.code == "USER_ALREADY_EXISTS"


def test_update_profile_touches_only_given_fields():
    user = create_user("p@example.com", "password1", "프로필")
    update_profile(user.id, nickname="유니티러버", interests=["physics", "ui"])
    update_profile(user.id, level="Advanced")

    fresh = get_user_by_id(user.id)
    assert fresh.nickname == "유니티러버"
    assert fresh.level == "Advanced"
    assert json.loads(fresh.interests_json) == ["physics", "ui"]
    assert fresh.onboarding_completed is False


def test_update_profile_unknown_user():
    with pytest.raises(AppError) as exc:
        update_profile(9999, nickname="x")
    assert exc.value.code == "USER_NOT_FOUND"


def test_get_user_by_id_missing():
    assert get_user_by_id(12345) is None


def test_profile_cache_follows_updates():
    user = create_user("cached@example.com", "password1", "캐시")
    assert get_user_profile(user.id)["nickname"] is None

    update_profile(user.id, nickname="새닉네임")
    assert get_user_profile(user.id)["nickname"] == "새닉네임"

    with get_session() as db:
        db.get(User, user.id).name = "직접 변경"
        db.commit()
    assert get_user_profile(user.id)["name"] == "캐시"
    cache.invalidate(cache.USERS)
    assert get_user_profile(user.id)["name"] == "직접 변경"


def test_profile_of_missing_user():
    assert get_user_profile(31337) is None
