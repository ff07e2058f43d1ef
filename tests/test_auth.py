from itsdangerous import Signer

from movie_auth.auth import (
    generate_session_id,
    hash_password,
    sign_session_id,
    unsign_session_id,
    verify_password,
)


def test_hash_is_salted_and_verifies():
    h1 = hash_password("secret1")
    h2 = hash_password("secret1")
    assert h1 != h2
    assert h1.startswith("$argon2id$")
    assert "secret1" not in h1
    assert verify_password("secret1", h1)
    assert not verify_password("secret2", h1)


def test_verify_rejects_missing_or_garbage_hash():
    assert not verify_password("secret1", None)
    assert not verify_password("secret1", "not-a-hash")


def test_session_ids_are_unique_and_long():
    ids = {generate_session_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 64 for i in ids)


def test_signed_cookie_round_trip():
    sid = generate_session_id()
    assert unsign_session_id(sign_session_id(sid, "k1"), "k1") == sid


def test_tampered_or_foreign_cookie_is_rejected():
    sid = generate_session_id()
    value = sign_session_id(sid, "k1")
    assert unsign_session_id(value, "k2") is None
    assert unsign_session_id("x" + value[1:], "k1") is None
    assert unsign_session_id(sid, "k1") is None
    assert unsign_session_id("", "k1") is None
    assert unsign_session_id(None, "k1") is None
    assert unsign_session_id(".abc", "k1") is None


def test_cookie_signature_is_bound_to_the_session_salt():
    sid = generate_session_id()
    unsalted = Signer("k1").sign(sid).decode("ascii")
    assert unsign_session_id(unsalted, "k1") is None
    assert unsign_session_id(sign_session_id(sid, "k1"), "k1") == sid
