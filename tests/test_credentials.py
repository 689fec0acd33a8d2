"""
Tests for password hashing
"""

from ledger_service.credentials import (
    hash_password, verify_password, generate_salt, generate_temporary_password
)


class TestPasswordHashing:

    def test_hash_verifies(self):
        stored = hash_password("correct horse")
        assert verify_password("correct horse", stored)

    def test_wrong_password_fails(self):
        stored = hash_password("correct horse")
        assert not verify_password("battery staple", stored)

    def test_hash_is_salted(self):
        assert hash_password("same-password") != hash_password("same-password")

    def test_explicit_salt_is_deterministic(self):
        salt = generate_salt()
        assert hash_password("pw-123456", salt) == hash_password("pw-123456", salt)

    def test_stored_form_does_not_contain_password(self):
        stored = hash_password("plaintext-secret")
        assert stored.startswith("scrypt$")
        assert "plaintext-secret" not in stored

    def test_malformed_hash_never_verifies(self):
        assert not verify_password("anything", "")
        assert not verify_password("anything", "not-a-hash")
        assert not verify_password("anything", "md5$salt$abc")

    def test_temporary_passwords_are_unique(self):
        first = generate_temporary_password()
        second = generate_temporary_password()
        assert first != second
        assert len(first) >= 12
