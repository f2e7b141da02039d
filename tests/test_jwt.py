import pytest

from backend.app.core.security import create_access_token, create_signed_token, decode_access_token, decode_signed_token


def test_create_and_decode_token_contains_sub_and_exp():
    token = create_access_token(user_id=123, role="teacher")
    assert isinstance(token, str) and token
    payload = decode_access_token(token)
    assert payload.get("sub") == "123"
    assert payload.get("role") == "teacher"
    assert "exp" in payload


def test_expired_token_raises_value_error():
    expired_token = create_access_token(user_id=1, expires_minutes=-1)
    with pytest.raises(ValueError):
        decode_access_token(expired_token)


def test_invalid_token_raises_value_error():
    with pytest.raises(ValueError):
        decode_access_token("invalid.token.value")


def test_file_token_is_not_an_access_token():
    token = create_signed_token("file", {"key": "photos/a.png", "sub": "1"}, 60)
    with pytest.raises(ValueError):
        decode_access_token(token)
    assert decode_signed_token(token, "file")["key"] == "photos/a.png"


def test_signed_token_purpose_must_match():
    token = create_signed_token("file", {"key": "x"}, 60)
    with pytest.raises(ValueError):
        decode_signed_token(token, "invite")
    with pytest.raises(ValueError):
        decode_signed_token(create_signed_token("file", {"key": "x"}, -5), "file")
