"""
Transfer endpoint
"""

from fastapi import APIRouter, Depends

from .auth import LedgerSystem, get_ledger_system, require_token
from .schemas import TransferRequest
from ..tokens import Claims


router = APIRouter()


@router.post("/transfer")
def transfer(
    request: TransferRequest,
    claims: Claims = Depends(require_token),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Transfer funds from the caller's account"""
    system.transfer_engine.transfer(claims.account_number, request.to_intent())
    return True
