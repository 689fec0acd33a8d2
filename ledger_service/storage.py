"""
Storage Backend Module

Provides the abstract credential store interface and implementations for
in-memory (testing), SQLite (default persistence) and PostgreSQL.

Every backend serializes access through one store-wide lock with a deadline,
and ``atomic()`` holds that lock plus one database transaction for the whole
block, so a read-check-write sequence cannot interleave with another one.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Union
from datetime import datetime, timezone
from dataclasses import dataclass, field, replace
from pathlib import Path
from contextlib import contextmanager
import sqlite3
import threading

from .errors import (
    DuplicateAccountNumberError, NotFoundError, PersistenceError, ValidationError
)
from .logging_config import get_logger


logger = get_logger("ledger.storage")


@dataclass
class Account:
    """One ledger participant as stored in the account table"""
    id: int
    first_name: str
    last_name: str
    account_number: int
    balance: int
    created_at: datetime
    password_hash: str = field(default="", repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """Outbound representation (never includes the password hash)"""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "accountNumber": self.account_number,
            "balance": self.balance,
            "createdAt": self.created_at.isoformat(),
        }


class AccountStore(ABC):
    """Abstract interface for credential store backends"""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._lock = threading.RLock()
        self._depth = 0

    @abstractmethod
    def initialize(self) -> None:
        """Create the account schema if missing"""
        pass

    @abstractmethod
    def create_account(self, first_name: str, last_name: str, password_hash: str,
                       account_number: int, balance: int) -> Account:
        """Persist a new account and return the stored row"""
        pass

    @abstractmethod
    def get_account_by_id(self, account_id: int) -> Account:
        """Load an account by primary key"""
        pass

    @abstractmethod
    def get_account_by_number(self, account_number: int) -> Account:
        """Load an account by its external account number"""
        pass

    @abstractmethod
    def update_balance(self, account_id: int, new_balance: int) -> None:
        """Overwrite the balance of an account"""
        pass

    @abstractmethod
    def delete_account(self, account_id: int) -> bool:
        """Delete an account, returning whether a row was removed"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def _locked(self):
        """Hold the store lock, giving up after the storage deadline"""
        if not self._lock.acquire(timeout=self.timeout):
            logger.error(f"Storage lock not acquired within {self.timeout}s")
            raise PersistenceError(f"Storage busy: timed out after {self.timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        with self._locked():
            if self._depth == 0:
                self.begin_transaction()
            self._depth += 1
            try:
                yield
            except Exception:
                self._depth -= 1
                if self._depth == 0:
                    self.rollback()
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    try:
                        self.commit()
                    except Exception:
                        # A failed commit must not leave the transaction open
                        self.rollback()
                        raise

    @staticmethod
    def _check_balance(new_balance: int) -> None:
        if new_balance < 0:
            raise ValidationError(f"Balance cannot be negative: {new_balance}")


class InMemoryAccountStore(AccountStore):
    """In-memory storage implementation for testing"""

    def __init__(self, timeout: float = 5.0):
        super().__init__(timeout)
        self._rows: Dict[int, Account] = {}
        self._next_id = 1
        self._snapshot: Optional[Dict[int, Account]] = None

    def initialize(self) -> None:
        pass

    def create_account(self, first_name: str, last_name: str, password_hash: str,
                       account_number: int, balance: int) -> Account:
        with self._locked():
            self._check_balance(balance)
            if any(row.account_number == account_number for row in self._rows.values()):
                raise DuplicateAccountNumberError(
                    f"Account number {account_number} already exists"
                )
            account = Account(
                id=self._next_id,
                first_name=first_name,
                last_name=last_name,
                account_number=account_number,
                balance=balance,
                created_at=datetime.now(timezone.utc),
                password_hash=password_hash
            )
            self._rows[account.id] = account
            self._next_id += 1
            return replace(account)

    def get_account_by_id(self, account_id: int) -> Account:
        with self._locked():
            account = self._rows.get(account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} not found")
            # Copy to prevent external mutation
            return replace(account)

    def get_account_by_number(self, account_number: int) -> Account:
        with self._locked():
            for account in self._rows.values():
                if account.account_number == account_number:
                    return replace(account)
            raise NotFoundError(f"Account number {account_number} not found")

    def update_balance(self, account_id: int, new_balance: int) -> None:
        with self._locked():
            self._check_balance(new_balance)
            account = self._rows.get(account_id)
            if account is None:
                raise NotFoundError(f"Account {account_id} not found")
            self._rows[account_id] = replace(account, balance=new_balance)

    def delete_account(self, account_id: int) -> bool:
        with self._locked():
            return self._rows.pop(account_id, None) is not None

    def begin_transaction(self) -> None:
        self._snapshot = dict(self._rows)

    def commit(self) -> None:
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is not None:
            self._rows = self._snapshot
            self._snapshot = None

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteAccountStore(AccountStore):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 5.0):
        super().__init__(timeout)
        self.db_path = str(db_path)
        try:
            # Autocommit mode; transactions are opened explicitly by atomic()
            self._connection = sqlite3.connect(
                self.db_path, check_same_thread=False,
                isolation_level=None, timeout=timeout
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        self._connection.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrent access
        if self.db_path != ":memory:":
            with self._locked():
                self._execute("PRAGMA journal_mode = WAL")
                self._execute("PRAGMA synchronous = NORMAL")

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.IntegrityError as e:
            if "account_number" in str(e):
                raise DuplicateAccountNumberError(f"Account number already exists: {e}") from e
            raise PersistenceError(f"Constraint violated: {e}") from e
        except OverflowError as e:
            # sqlite3 binds integers as signed 64-bit
            raise ValidationError(f"Integer parameter out of range: {e}") from e
        except sqlite3.Error as e:
            logger.error(f"SQLite failure: {e}")
            raise PersistenceError(f"Storage failure: {e}") from e

    def initialize(self) -> None:
        """Ensure table exists with proper schema"""
        with self._locked():
            self._execute("""
                CREATE TABLE IF NOT EXISTS account (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    password_hash TEXT NOT NULL,
                    balance INTEGER NOT NULL CHECK (balance >= 0),
                    account_number INTEGER NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
            """)

    def create_account(self, first_name: str, last_name: str, password_hash: str,
                       account_number: int, balance: int) -> Account:
        with self._locked():
            self._check_balance(balance)
            now = datetime.now(timezone.utc).isoformat()
            cursor = self._execute("""
                INSERT INTO account (first_name, last_name, password_hash, balance, account_number, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (first_name, last_name, password_hash, balance, account_number, now))
            return self.get_account_by_id(cursor.lastrowid)

    def get_account_by_id(self, account_id: int) -> Account:
        with self._locked():
            row = self._execute("""
                SELECT * FROM account WHERE id = ?
            """, (account_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Account {account_id} not found")
            return self._account_from_row(row)

    def get_account_by_number(self, account_number: int) -> Account:
        with self._locked():
            row = self._execute("""
                SELECT * FROM account WHERE account_number = ?
            """, (account_number,)).fetchone()
            if row is None:
                raise NotFoundError(f"Account number {account_number} not found")
            return self._account_from_row(row)

    def update_balance(self, account_id: int, new_balance: int) -> None:
        with self._locked():
            self._check_balance(new_balance)
            cursor = self._execute("""
                UPDATE account SET balance = ? WHERE id = ?
            """, (new_balance, account_id))
            if cursor.rowcount == 0:
                raise NotFoundError(f"Account {account_id} not found")

    def delete_account(self, account_id: int) -> bool:
        with self._locked():
            cursor = self._execute("""
                DELETE FROM account WHERE id = ?
            """, (account_id,))
            return cursor.rowcount > 0

    def begin_transaction(self) -> None:
        # IMMEDIATE takes the write lock up front so other connections cannot
        # slip a write between our reads and writes
        self._execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        if self._connection.in_transaction:
            self._execute("COMMIT")

    def rollback(self) -> None:
        if self._connection.in_transaction:
            self._execute("ROLLBACK")

    def close(self) -> None:
        """Close SQLite connection"""
        with self._locked():
            if self._connection:
                self._connection.close()
                self._connection = None

    @staticmethod
    def _account_from_row(row: sqlite3.Row) -> Account:
        return Account(
            id=row['id'],
            first_name=row['first_name'],
            last_name=row['last_name'],
            account_number=row['account_number'],
            balance=row['balance'],
            created_at=datetime.fromisoformat(row['created_at']),
            password_hash=row['password_hash']
        )


class PostgreSQLAccountStore(AccountStore):
    """PostgreSQL storage backend with ACID transaction support"""

    UNIQUE_VIOLATION = "23505"

    def __init__(self, connection_string: str, timeout: float = 5.0):
        super().__init__(timeout)
        try:
            import psycopg2
            import psycopg2.extras
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self._connection = None
        self._connect()

    def _connect(self) -> None:
        """Establish database connection"""
        try:
            self._connection = self.psycopg2.connect(
                self.connection_string,
                cursor_factory=self.extras.RealDictCursor,
                connect_timeout=max(1, int(self.timeout)),
                options=f"-c statement_timeout={int(self.timeout * 1000)}"
            )
        except self.psycopg2.Error as e:
            raise PersistenceError(f"Cannot connect to PostgreSQL: {e}") from e
        self._connection.autocommit = False  # We handle transactions manually

    def _execute(self, sql: str, params: tuple = ()):
        cursor = self._connection.cursor()
        try:
            cursor.execute(sql, params)
            result = cursor.fetchone() if cursor.description else None
            rowcount = cursor.rowcount
            if not self.in_transaction:
                self._connection.commit()
            return result, rowcount
        except self.psycopg2.Error as e:
            if not self.in_transaction:
                self._connection.rollback()
            if getattr(e, 'pgcode', None) == self.UNIQUE_VIOLATION:
                raise DuplicateAccountNumberError(f"Account number already exists: {e}") from e
            logger.error(f"PostgreSQL failure: {e}")
            raise PersistenceError(f"Storage failure: {e}") from e
        finally:
            cursor.close()

    def initialize(self) -> None:
        """Ensure table exists with proper schema"""
        with self._locked():
            self._execute("""
                CREATE TABLE IF NOT EXISTS account (
                    id BIGSERIAL PRIMARY KEY,
                    first_name VARCHAR(250) NOT NULL,
                    last_name VARCHAR(250) NOT NULL,
                    password_hash TEXT NOT NULL,
                    balance BIGINT NOT NULL CHECK (balance >= 0),
                    account_number BIGINT NOT NULL UNIQUE,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)

    def create_account(self, first_name: str, last_name: str, password_hash: str,
                       account_number: int, balance: int) -> Account:
        with self._locked():
            self._check_balance(balance)
            row, _ = self._execute("""
                INSERT INTO account (first_name, last_name, password_hash, balance, account_number)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
            """, (first_name, last_name, password_hash, balance, account_number))
            return self._account_from_row(row)

    def _lock_clause(self) -> str:
        # Row locks keep other processes out of a running transfer
        return " FOR UPDATE" if self.in_transaction else ""

    def get_account_by_id(self, account_id: int) -> Account:
        with self._locked():
            row, _ = self._execute(
                "SELECT * FROM account WHERE id = %s" + self._lock_clause(),
                (account_id,)
            )
            if row is None:
                raise NotFoundError(f"Account {account_id} not found")
            return self._account_from_row(row)

    def get_account_by_number(self, account_number: int) -> Account:
        with self._locked():
            row, _ = self._execute(
                "SELECT * FROM account WHERE account_number = %s" + self._lock_clause(),
                (account_number,)
            )
            if row is None:
                raise NotFoundError(f"Account number {account_number} not found")
            return self._account_from_row(row)

    def update_balance(self, account_id: int, new_balance: int) -> None:
        with self._locked():
            self._check_balance(new_balance)
            _, rowcount = self._execute("""
                UPDATE account SET balance = %s WHERE id = %s
            """, (new_balance, account_id))
            if rowcount == 0:
                raise NotFoundError(f"Account {account_id} not found")

    def delete_account(self, account_id: int) -> bool:
        with self._locked():
            _, rowcount = self._execute("""
                DELETE FROM account WHERE id = %s
            """, (account_id,))
            return rowcount > 0

    def commit(self) -> None:
        try:
            self._connection.commit()
        except self.psycopg2.Error as e:
            logger.error(f"PostgreSQL commit failed: {e}")
            raise PersistenceError(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        try:
            self._connection.rollback()
        except self.psycopg2.Error as e:
            logger.error(f"PostgreSQL rollback failed: {e}")
            raise PersistenceError(f"Rollback failed: {e}") from e

    def close(self) -> None:
        """Close PostgreSQL connection"""
        with self._locked():
            if self._connection:
                self._connection.close()
                self._connection = None

    @staticmethod
    def _account_from_row(row: Dict[str, Any]) -> Account:
        return Account(
            id=row['id'],
            first_name=row['first_name'],
            last_name=row['last_name'],
            account_number=row['account_number'],
            balance=row['balance'],
            created_at=row['created_at'],
            password_hash=row['password_hash']
        )


def create_store(database_url: str, timeout: float = 5.0) -> AccountStore:
    """Build a store backend from a database URL"""
    if database_url.startswith("memory://"):
        return InMemoryAccountStore(timeout=timeout)
    if database_url.startswith("sqlite:///"):
        db_path = database_url[len("sqlite:///"):] or ":memory:"
        return SQLiteAccountStore(db_path, timeout=timeout)
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLAccountStore(database_url, timeout=timeout)
    raise PersistenceError(f"Unsupported database URL: {database_url}")
