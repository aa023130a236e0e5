from ledgerly.security import hash_password, verify_password


def test_hash_round_trip() -> None:
    encoded = hash_password("s3cret", iterations=1_000)
    assert encoded.startswith("pbkdf2_sha256$1000$")
    assert verify_password("s3cret", encoded)
    assert not verify_password("wrong", encoded)


def test_salt_makes_hashes_unique() -> None:
    assert hash_password("same", iterations=1_000) != hash_password("same", iterations=1_000)


def test_known_django_hash() -> None:
    encoded = hash_password("password", salt="seasalt", iterations=1_000)
    assert encoded == hash_password("password", salt="seasalt", iterations=1_000)
    assert verify_password("password", encoded)


def test_rejects_malformed_hashes() -> None:
    assert not verify_password("x", None)
    assert not verify_password("x", "")
    assert not verify_password("x", "md5$abc")
    assert not verify_password("x", "bcrypt$10$salt$digest")
    assert not verify_password("x", "pbkdf2_sha256$notanumber$salt$digest")
