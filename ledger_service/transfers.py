"""
Transfer Processing Module

Moves funds between two accounts. The funds check and both balance writes
run inside one storage transaction, so concurrent transfers from the same
sender are serialized and the total debited never exceeds the balance.
"""

from dataclasses import dataclass

from .storage import AccountStore
from .errors import InsufficientFundsError, LedgerError, ValidationError
from .logging_config import get_logger, log_action


@dataclass(frozen=True)
class TransferIntent:
    """A requested transfer; exists only for the duration of one request"""
    amount: int
    recipient_account_number: int


@dataclass(frozen=True)
class TransferResult:
    """Balances after an applied transfer"""
    sender_account_number: int
    recipient_account_number: int
    amount: int
    sender_balance: int
    recipient_balance: int


class TransferEngine:
    """
    Applies transfers between accounts held in an AccountStore
    """

    def __init__(self, store: AccountStore):
        self.store = store
        self.logger = get_logger("ledger.transfers")

    def transfer(self, sender_account_number: int, intent: TransferIntent) -> TransferResult:
        """
        Transfer funds from the sender to the intent's recipient

        Args:
            sender_account_number: Account number of the authenticated caller
            intent: Amount and recipient account number

        Returns:
            TransferResult with both new balances

        Raises:
            ValidationError: If the amount is not a positive integer or the
                recipient is the sender
            NotFoundError: If the sender or recipient does not exist
            InsufficientFundsError: If the amount is not strictly below the
                sender balance
            PersistenceError: If storage fails; nothing is written
        """
        amount = intent.amount
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError(f"Amount must be a positive integer, got {amount!r}")
        if intent.recipient_account_number == sender_account_number:
            raise ValidationError("Cannot transfer to the same account")

        try:
            with self.store.atomic():
                sender = self.store.get_account_by_number(sender_account_number)
                recipient = self.store.get_account_by_number(intent.recipient_account_number)

                # A transfer leaving exactly zero is rejected as well
                if sender.balance <= amount:
                    raise InsufficientFundsError("Insufficient Balance")

                new_sender_balance = sender.balance - amount
                new_recipient_balance = recipient.balance + amount
                self.store.update_balance(sender.id, new_sender_balance)
                self.store.update_balance(recipient.id, new_recipient_balance)
        except LedgerError as e:
            log_action(
                self.logger, "warning", f"Transfer rejected: {e.message}",
                action="transfer", resource=f"account_number:{sender_account_number}",
                extra={
                    "kind": e.kind,
                    "amount": amount,
                    "recipient": intent.recipient_account_number
                }
            )
            raise

        log_action(
            self.logger, "info", "Transfer applied",
            account_id=sender.id, action="transfer", resource=f"account:{sender.id}",
            extra={
                "amount": amount,
                "sender": sender.account_number,
                "recipient": recipient.account_number,
                "sender_balance": new_sender_balance,
                "recipient_balance": new_recipient_balance
            }
        )

        return TransferResult(
            sender_account_number=sender.account_number,
            recipient_account_number=recipient.account_number,
            amount=amount,
            sender_balance=new_sender_balance,
            recipient_balance=new_recipient_balance
        )
