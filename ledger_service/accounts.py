"""
Account Management Module

Manages the account lifecycle: registration with a seeded starting balance
and a random 10-digit account number, lookups, deletion and login.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import secrets

from .storage import AccountStore, Account
from .tokens import TokenService
from .credentials import hash_password, verify_password, generate_temporary_password
from .errors import (
    AuthenticationError, DuplicateAccountNumberError, NotFoundError,
    PersistenceError, ValidationError
)
from .logging_config import get_logger, log_action


ACCOUNT_NUMBER_MIN = 1_000_000_000
ACCOUNT_NUMBER_MAX = 9_999_999_999

# Verified on unknown-account logins; every failed login costs one scrypt
UNKNOWN_ACCOUNT_HASH = hash_password(generate_temporary_password())


def generate_account_number() -> int:
    """Uniform random 10-digit account number"""
    return ACCOUNT_NUMBER_MIN + secrets.randbelow(ACCOUNT_NUMBER_MAX - ACCOUNT_NUMBER_MIN + 1)


@dataclass
class Registration:
    """Outcome of registering a new account"""
    account: Account
    temporary_password: Optional[str] = None


class AccountManager:
    """
    Manages account lifecycle and authentication
    """

    def __init__(
        self,
        store: AccountStore,
        token_service: TokenService,
        starting_balance: int = 10000,
        account_number_attempts: int = 5,
        password_min_length: int = 8,
        number_generator=generate_account_number
    ):
        if starting_balance <= 0:
            raise ValueError("Starting balance must be positive")
        self.store = store
        self.token_service = token_service
        self.starting_balance = starting_balance
        self.account_number_attempts = max(1, account_number_attempts)
        self.password_min_length = password_min_length
        self._generate_number = number_generator
        self.logger = get_logger("ledger.accounts")

    def create_account(self, first_name: str, last_name: str, password: str) -> Account:
        """
        Create a new account

        Args:
            first_name: Account holder first name
            last_name: Account holder last name
            password: Login credential (stored hashed)

        Returns:
            Stored Account with id, account number and starting balance

        Raises:
            ValidationError: If a name is blank or the password too short
            PersistenceError: If no free account number was found or storage failed
        """
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not first_name or not last_name:
            raise ValidationError("First and last name are required")
        if password is None or len(password) < self.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.password_min_length} characters"
            )

        password_hash = hash_password(password)

        for attempt in range(1, self.account_number_attempts + 1):
            account_number = self._generate_number()
            try:
                account = self.store.create_account(
                    first_name=first_name,
                    last_name=last_name,
                    password_hash=password_hash,
                    account_number=account_number,
                    balance=self.starting_balance
                )
            except DuplicateAccountNumberError:
                self.logger.warning(
                    f"Account number collision on attempt {attempt}/{self.account_number_attempts}"
                )
                continue

            log_action(
                self.logger, "info", "Account created",
                account_id=account.id, action="create_account",
                resource=f"account:{account.id}",
                extra={"account_number": account.account_number, "balance": account.balance}
            )
            return account

        raise PersistenceError(
            f"Could not allocate a unique account number after {self.account_number_attempts} attempts"
        )

    def register(self, first_name: str, last_name: str,
                 password: Optional[str] = None) -> Registration:
        """Create an account, issuing a temporary password when none is given"""
        temporary_password = None
        if password is None:
            temporary_password = generate_temporary_password()
            password = temporary_password
        account = self.create_account(first_name, last_name, password)
        return Registration(account=account, temporary_password=temporary_password)

    def get_account(self, account_id: int) -> Account:
        """Get account by ID"""
        return self.store.get_account_by_id(account_id)

    def get_account_by_number(self, account_number: int) -> Account:
        """Get account by account number"""
        return self.store.get_account_by_number(account_number)

    def delete_account(self, account_id: int) -> bool:
        """Delete an account; deleting a missing id is not an error"""
        deleted = self.store.delete_account(account_id)
        log_action(
            self.logger, "info",
            "Account deleted" if deleted else "Delete matched no account",
            account_id=account_id, action="delete_account",
            resource=f"account:{account_id}"
        )
        return deleted

    def login(self, account_number: int, password: str) -> Tuple[Account, str]:
        """
        Authenticate by account number and password

        Returns:
            The account and a freshly signed token

        Raises:
            AuthenticationError: If the account is unknown or the password wrong
        """
        try:
            account = self.store.get_account_by_number(account_number)
        except NotFoundError:
            verify_password(password or "", UNKNOWN_ACCOUNT_HASH)
            log_action(
                self.logger, "warning", "Login failed",
                action="login", extra={"account_number": account_number, "reason": "unknown_account"}
            )
            raise AuthenticationError("Invalid credentials")

        if not verify_password(password or "", account.password_hash):
            log_action(
                self.logger, "warning", "Login failed",
                account_id=account.id, action="login",
                extra={"account_number": account_number, "reason": "invalid_password"}
            )
            raise AuthenticationError("Invalid credentials")

        token = self.token_service.issue(account)
        log_action(
            self.logger, "info", "Login succeeded",
            account_id=account.id, action="login", resource=f"account:{account.id}"
        )
        return account, token
