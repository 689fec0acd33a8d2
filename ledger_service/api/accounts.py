"""
Registration, login and account endpoints
"""

from fastapi import APIRouter, Depends, Path, status

from .auth import LedgerSystem, authorize_account_access, get_ledger_system, require_token
from .schemas import LoginRequest, RegisterRequest, MAX_INT64
from ..tokens import Claims


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a new account"""
    registration = system.account_manager.register(
        first_name=request.first_name,
        last_name=request.last_name,
        password=request.password
    )

    result = registration.account.to_dict()
    if registration.temporary_password:
        result["temporaryPassword"] = registration.temporary_password
    return result


@router.post("/login")
def login(
    request: LoginRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Exchange account number and password for a token"""
    account, token = system.account_manager.login(request.account_number, request.password)
    return {"account": account.to_dict(), "token": token}


@router.get("/account/{account_id}")
def get_account(
    account_id: int = Path(..., ge=1, le=MAX_INT64),
    claims: Claims = Depends(require_token),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get account details"""
    authorize_account_access(claims, account_id, system)
    return system.account_manager.get_account(account_id).to_dict()


@router.delete("/account/{account_id}")
def delete_account(
    account_id: int = Path(..., ge=1, le=MAX_INT64),
    claims: Claims = Depends(require_token),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Delete an account"""
    authorize_account_access(claims, account_id, system)
    return {"deleted": system.account_manager.delete_account(account_id)}
