"""
Test suite for account lifecycle and login
"""

import pytest

from ledger_service import accounts as accounts_module
from ledger_service.storage import InMemoryAccountStore
from ledger_service.tokens import TokenService
from ledger_service.accounts import (
    AccountManager, Registration, generate_account_number,
    ACCOUNT_NUMBER_MIN, ACCOUNT_NUMBER_MAX
)
from ledger_service.errors import (
    AuthenticationError, NotFoundError, PersistenceError, ValidationError
)


PASSWORD = "s3cret-pass"


class TestAccountManager:
    """Test account lifecycle functionality"""

    def setup_method(self):
        """Set up test fixtures"""
        self.store = InMemoryAccountStore()
        self.token_service = TokenService("test-secret-key")
        self.account_manager = AccountManager(self.store, self.token_service)

    def test_create_account_seeds_balance_and_number(self):
        account = self.account_manager.create_account("John", "Doe", PASSWORD)

        assert account.id > 0
        assert account.balance == 10000
        assert account.balance > 0
        assert ACCOUNT_NUMBER_MIN <= account.account_number <= ACCOUNT_NUMBER_MAX
        assert len(str(account.account_number)) == 10

    def test_account_numbers_unique(self):
        numbers = {
            self.account_manager.create_account("User", str(i), PASSWORD).account_number
            for i in range(20)
        }
        assert len(numbers) == 20

    def test_password_is_stored_hashed(self):
        account = self.account_manager.create_account("John", "Doe", PASSWORD)
        stored = self.store.get_account_by_id(account.id)
        assert stored.password_hash
        assert PASSWORD not in stored.password_hash

    def test_create_then_fetch_round_trip(self):
        created = self.account_manager.create_account("Jane", "Smith", PASSWORD)
        fetched = self.account_manager.get_account(created.id)

        assert fetched.to_dict() == created.to_dict()
        assert fetched.first_name == "Jane"
        assert fetched.last_name == "Smith"
        assert fetched.account_number == created.account_number
        assert fetched.balance == created.balance
        assert "passwordHash" not in fetched.to_dict()
        assert "password_hash" not in fetched.to_dict()

    def test_names_are_trimmed(self):
        account = self.account_manager.create_account("  Ann ", " Lee ", PASSWORD)
        assert account.first_name == "Ann"
        assert account.last_name == "Lee"

    @pytest.mark.parametrize("first_name,last_name", [("", "Doe"), ("John", "   "), (None, "Doe")])
    def test_blank_names_rejected(self, first_name, last_name):
        with pytest.raises(ValidationError):
            self.account_manager.create_account(first_name, last_name, PASSWORD)

    def test_short_password_rejected(self):
        with pytest.raises(ValidationError):
            self.account_manager.create_account("John", "Doe", "short")

    def test_custom_starting_balance(self):
        manager = AccountManager(self.store, self.token_service, starting_balance=500)
        assert manager.create_account("John", "Doe", PASSWORD).balance == 500

    def test_non_positive_starting_balance_refused(self):
        with pytest.raises(ValueError):
            AccountManager(self.store, self.token_service, starting_balance=0)

    def test_collision_is_retried(self):
        existing = self.account_manager.create_account("First", "Holder", PASSWORD)
        numbers = iter([existing.account_number, existing.account_number, 2222222222])
        manager = AccountManager(
            self.store, self.token_service,
            number_generator=lambda: next(numbers)
        )

        account = manager.create_account("Second", "Holder", PASSWORD)

        assert account.account_number == 2222222222

    def test_collisions_exhausting_attempts_raise(self):
        existing = self.account_manager.create_account("First", "Holder", PASSWORD)
        manager = AccountManager(
            self.store, self.token_service,
            account_number_attempts=3,
            number_generator=lambda: existing.account_number
        )

        with pytest.raises(PersistenceError):
            manager.create_account("Second", "Holder", PASSWORD)

    def test_register_with_password(self):
        registration = self.account_manager.register("John", "Doe", PASSWORD)

        assert isinstance(registration, Registration)
        assert registration.temporary_password is None
        self.account_manager.login(registration.account.account_number, PASSWORD)

    def test_register_without_password_issues_temporary_one(self):
        registration = self.account_manager.register("John", "Doe")

        assert registration.temporary_password
        account, token = self.account_manager.login(
            registration.account.account_number, registration.temporary_password
        )
        assert account.id == registration.account.id
        assert token

    def test_login_returns_valid_token(self):
        created = self.account_manager.create_account("John", "Doe", PASSWORD)

        account, token = self.account_manager.login(created.account_number, PASSWORD)
        claims = self.token_service.validate(token)

        assert account.id == created.id
        assert claims.account_number == created.account_number
        assert claims.account_id == created.id

    def test_login_wrong_password(self):
        created = self.account_manager.create_account("John", "Doe", PASSWORD)
        with pytest.raises(AuthenticationError):
            self.account_manager.login(created.account_number, "wrong-password")

    def test_login_unknown_account(self):
        with pytest.raises(AuthenticationError):
            self.account_manager.login(1234509876, PASSWORD)

    def test_unknown_account_still_verifies_a_hash(self, monkeypatch):
        checked = []

        def recording_verify(password, password_hash):
            checked.append(password_hash)
            return False

        monkeypatch.setattr(accounts_module, "verify_password", recording_verify)

        with pytest.raises(AuthenticationError):
            self.account_manager.login(1234509876, PASSWORD)

        assert checked == [accounts_module.UNKNOWN_ACCOUNT_HASH]

    def test_unknown_account_and_wrong_password_fail_alike(self, monkeypatch):
        created = self.account_manager.create_account("John", "Doe", PASSWORD)
        checked = []
        real_verify = accounts_module.verify_password

        def recording_verify(password, password_hash):
            checked.append(password_hash)
            return real_verify(password, password_hash)

        monkeypatch.setattr(accounts_module, "verify_password", recording_verify)

        with pytest.raises(AuthenticationError) as unknown:
            self.account_manager.login(1234509876, "wrong-password")
        with pytest.raises(AuthenticationError) as wrong:
            self.account_manager.login(created.account_number, "wrong-password")

        assert len(checked) == 2
        assert unknown.value.to_dict() == wrong.value.to_dict()

    def test_get_account_by_number(self):
        created = self.account_manager.create_account("John", "Doe", PASSWORD)
        assert self.account_manager.get_account_by_number(created.account_number).id == created.id

    def test_delete_account(self):
        created = self.account_manager.create_account("John", "Doe", PASSWORD)

        assert self.account_manager.delete_account(created.id) is True
        with pytest.raises(NotFoundError):
            self.account_manager.get_account(created.id)
        assert self.account_manager.delete_account(created.id) is False


class TestAccountNumberGenerator:

    def test_always_ten_digits(self):
        for _ in range(1000):
            number = generate_account_number()
            assert ACCOUNT_NUMBER_MIN <= number <= ACCOUNT_NUMBER_MAX
