"""
Pydantic schemas for API requests
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..accounts import ACCOUNT_NUMBER_MIN, ACCOUNT_NUMBER_MAX
from ..transfers import TransferIntent


# Largest value a BIGINT column holds
MAX_INT64 = 2 ** 63 - 1


class CamelModel(BaseModel):
    """Accepts camelCase JSON keys as well as the snake_case field names"""
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(CamelModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=250)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=250)
    password: Optional[str] = Field(None, description="Generated when omitted")


class LoginRequest(CamelModel):
    account_number: int = Field(
        ..., alias="accountNumber", ge=ACCOUNT_NUMBER_MIN, le=ACCOUNT_NUMBER_MAX
    )
    password: str


class TransferRequest(CamelModel):
    amount: int = Field(..., gt=0, le=MAX_INT64, description="Amount in the smallest currency unit")
    recipient_account_number: int = Field(
        ..., alias="recipientAccountNumber", ge=ACCOUNT_NUMBER_MIN, le=ACCOUNT_NUMBER_MAX
    )

    def to_intent(self) -> TransferIntent:
        return TransferIntent(
            amount=self.amount,
            recipient_account_number=self.recipient_account_number
        )
