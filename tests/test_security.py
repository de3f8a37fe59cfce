from security import hash_password, verify_password


def test_hash_is_salted_and_verifies():
    first = hash_password("secret")
    second = hash_password("secret")
    assert first != second
    assert first.startswith("pbkdf2:sha256:600000$")
    assert verify_password("secret", first)
    assert verify_password("secret", second)


def test_wrong_password_is_rejected():
    assert not verify_password("nope", hash_password("secret"))


def test_malformed_digest_returns_false():
    assert not verify_password("secret", "not-a-hash")
    assert not verify_password("secret", "")
    assert not verify_password("secret", None)
    assert not verify_password("", hash_password("secret"))
