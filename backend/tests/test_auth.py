import time

import jwt

from services.auth import create_session_token, hash_password, parse_session_token, verify_password

SECRET = "test-secret-that-is-at-least-32-bytes"
MAX_AGE = 3600

def test_password_round_trip():
    stored = hash_password("password123")
    assert stored.startswith("$2b$")
    assert verify_password("password123", stored)
    assert not verify_password("password124", stored)

def test_password_salted():
    assert hash_password("same") != hash_password("same")

def test_long_password():
    password = "correct horse battery staple " * 4
    stored = hash_password(password)
    assert verify_password(password, stored)
    assert not verify_password("correct horse", stored)

def test_verify_password_malformed():
    assert not verify_password("x", "plaintext")
    assert not verify_password("x", "pbkdf2_sha256$1000$salt$abc")

def test_session_round_trip():
    now = time.time()
    token = create_session_token(42, "agent", SECRET, MAX_AGE, now=now)
    session = parse_session_token(token, SECRET)
    assert session.user_id == 42
    assert session.role == "agent"
    assert session.issued_at == float(int(now))

def test_session_token_is_hs256_jwt():
    token = create_session_token(7, "admin", SECRET, MAX_AGE)
    assert jwt.get_unverified_header(token)["alg"] == "HS256"
    claims = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert claims["sub"] == "7"
    assert claims["exp"] - claims["iat"] == MAX_AGE

def test_session_expired():
    token = create_session_token(42, "agent", SECRET, MAX_AGE, now=time.time() - MAX_AGE - 60)
    assert parse_session_token(token, SECRET) is None

def test_session_wrong_secret():
    token = create_session_token(42, "agent", SECRET, MAX_AGE)
    assert parse_session_token(token, "another-secret-that-is-32-bytes-long") is None

def test_session_role_cannot_be_edited():
    token = create_session_token(42, "agent", SECRET, MAX_AGE)
    header, _, signature = token.split(".")
    admin = create_session_token(42, "admin", "attacker-chosen-secret-of-32-bytes!", MAX_AGE)
    forged_payload = admin.split(".")[1]
    assert parse_session_token(f"{header}.{forged_payload}.{signature}", SECRET) is None

def test_unsigned_token_rejected():
    now = int(time.time())
    claims = {"sub": "42", "role": "admin", "iat": now, "exp": now + MAX_AGE}
    unsigned = jwt.encode(claims, None, algorithm="none")
    assert parse_session_token(unsigned, SECRET) is None

def test_token_missing_role_rejected():
    now = int(time.time())
    token = jwt.encode({"sub": "42", "iat": now, "exp": now + MAX_AGE}, SECRET, algorithm="HS256")
    assert parse_session_token(token, SECRET) is None

def test_token_with_non_numeric_subject_rejected():
    now = int(time.time())
    claims = {"sub": "someone", "role": "agent", "iat": now, "exp": now + MAX_AGE}
    assert parse_session_token(jwt.encode(claims, SECRET, algorithm="HS256"), SECRET) is None

def test_session_garbage():
    assert parse_session_token("", SECRET) is None
    assert parse_session_token("no-dot-here", SECRET) is None
    assert parse_session_token("ünïcode.sïg.x", SECRET) is None
