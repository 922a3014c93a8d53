"""Unit tests for BcryptPasswordHasher."""

from infrastructure.auth.password import BcryptPasswordHasher


class TestBcryptPasswordHasher:
    def test_hash_is_salted_and_verifiable(self):
        hasher = BcryptPasswordHasher(rounds=4)

        first = hasher.hash("correct horse")
        second = hasher.hash("correct horse")

        assert first != second
        assert first.startswith("$2b$04$")
        assert hasher.verify("correct horse", first)
        assert hasher.verify("correct horse", second)

    def test_wrong_password(self):
        hasher = BcryptPasswordHasher(rounds=4)

        assert not hasher.verify("wrong", hasher.hash("correct horse"))

    def test_malformed_hash_does_not_raise(self):
        assert not BcryptPasswordHasher(rounds=4).verify("anything", "not-a-bcrypt-hash")
