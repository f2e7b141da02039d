from backend.app.core.security import (
    create_access_token,
    decode_access_token,
    generate_one_time_token,
    get_password_hash,
    hash_one_time_token,
    verify_password,
)


def test_password_hashing_not_plain():
    plain = "password123"
    hashed = get_password_hash(plain)
    assert hashed and hashed != plain


def test_verify_password():
    hashed = get_password_hash("secret")
    assert verify_password("secret", hashed)
    assert not verify_password("wrong", hashed)


def test_create_access_token_accepts_claims_dict():
    token = create_access_token({"sub": "user123"})
    decoded = decode_access_token(token)
    assert decoded.get("sub") == "user123"
    assert "role" not in decoded


def test_one_time_token_is_stored_as_digest():
    raw, digest = generate_one_time_token()
    assert len(raw) == 64
    assert digest != raw
    assert hash_one_time_token(raw) == digest
    assert generate_one_time_token()[0] != raw
