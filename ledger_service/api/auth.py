"""
Ledger system wiring and authentication dependencies
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request

from ..config import LedgerConfig
from ..storage import AccountStore, create_store
from ..tokens import Claims, TokenService
from ..accounts import AccountManager
from ..transfers import TransferEngine
from ..errors import ForbiddenError, InvalidTokenError
from ..logging_config import get_logger, log_action


logger = get_logger("ledger.auth")


class LedgerSystem:
    """Ledger components wired to one store"""

    def __init__(self, config: LedgerConfig, store: Optional[AccountStore] = None):
        self.config = config

        # Initialize storage
        self.store = store or create_store(config.database_url, config.storage_timeout_seconds)
        self.store.initialize()

        self.token_service = TokenService(
            secret=config.jwt_secret.get_secret_value(),
            algorithm=config.jwt_algorithm,
            expiry_hours=config.jwt_expiry_hours
        )
        self.account_manager = AccountManager(
            self.store,
            self.token_service,
            starting_balance=config.starting_balance,
            account_number_attempts=config.account_number_attempts,
            password_min_length=config.password_min_length
        )
        self.transfer_engine = TransferEngine(self.store)

    def close(self) -> None:
        self.store.close()


def get_ledger_system(request: Request) -> LedgerSystem:
    """Dependency returning the ledger system attached to the app"""
    system = getattr(request.app.state, "ledger_system", None)
    if system is None:
        raise HTTPException(status_code=503, detail="Ledger system not initialized")
    return system


def require_token(
    request: Request,
    system: LedgerSystem = Depends(get_ledger_system)
) -> Claims:
    """
    Request gate for protected routes.

    Reads the token header and validates it. A failure short-circuits the
    request with a 403 envelope before the handler runs; on success the
    claims are handed to the handler as a parameter.
    """
    token = request.headers.get(system.config.token_header)
    try:
        return system.token_service.validate(token)
    except InvalidTokenError as e:
        log_action(
            logger, "warning", f"Rejected token: {e.message}",
            action="authenticate", resource=request.url.path
        )
        raise


def authorize_account_access(claims: Claims, account_id: int, system: LedgerSystem) -> None:
    """Restrict account routes to the caller's own account unless configured otherwise"""
    if system.config.allow_cross_account_access:
        return
    if claims.account_id != account_id:
        log_action(
            logger, "warning", "Cross-account access denied",
            account_id=claims.account_id, action="authorize",
            resource=f"account:{account_id}"
        )
        raise ForbiddenError("Not allowed to access this account")
