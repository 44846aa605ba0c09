"""
Ledger — the only sanctioned way to change a wallet balance.
Every movement locks the account row and appends a WalletTransaction in the caller's unit of work.
"""

import json
import logging
from decimal import Decimal
from sqlalchemy import select

from escrow_service.errors import InsufficientFunds, ValidationError
from escrow_service.models import TransactionKind, WalletTransaction
from escrow_service.services.directory import UserDirectory
from escrow_service.services.unit_of_work import atomic
from escrow_service.services.validation import parse_amount, parse_uuid

logger = logging.getLogger(__name__)


class Ledger:

    def __init__(self, session, directory=None):
        self.session = session
        self.directory = directory or UserDirectory(session)

    def get_balance(self, account_id):
        user = self.directory.get_account(parse_uuid(account_id, "account id"))
        return Decimal(user.wallet_balance or 0)

    def history(self, account_id, limit=100):
        account_id = parse_uuid(account_id, "account id")
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.user_id == account_id)
            .order_by(WalletTransaction.created_at.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def credit(self, account_id, amount, escrow_id=None, description=None):
        amount = parse_amount(amount)
        account_id = parse_uuid(account_id, "account id")
        with atomic(self.session):
            user = self.directory.get_account(account_id, for_update=True)
            user.wallet_balance = Decimal(user.wallet_balance or 0) + amount
            entry = self._record(user, TransactionKind.CREDIT, amount, escrow_id=escrow_id,
                                 description=description)
        logger.info("Credited %s to account %s (balance %s)", amount, account_id, entry.balance_after)
        return entry

    def debit(self, account_id, amount, escrow_id=None, description=None,
              kind=TransactionKind.DEBIT, destination=None):
        amount = parse_amount(amount)
        account_id = parse_uuid(account_id, "account id")
        with atomic(self.session):
            user = self.directory.get_account(account_id, for_update=True)
            balance = Decimal(user.wallet_balance or 0)
            if balance < amount:
                logger.warning("Debit of %s refused for account %s: balance %s", amount, account_id, balance)
                raise InsufficientFunds(f"Insufficient funds: balance is {balance}")
            user.wallet_balance = balance - amount
            entry = self._record(user, kind, amount, escrow_id=escrow_id,
                                 description=description, destination=destination)
        logger.info("Debited %s from account %s (balance %s)", amount, account_id, entry.balance_after)
        return entry

    def withdraw(self, account_id, amount, destination):
        """
        Move money out of the system to an external destination.
        Returns the receipt of the withdrawal.
        """
        if not destination:
            raise ValidationError("Account details are required")
        if not isinstance(destination, str):
            destination = json.dumps(destination, sort_keys=True, default=str)
        entry = self.debit(
            account_id,
            amount,
            kind=TransactionKind.WITHDRAWAL,
            destination=destination,
            description="Withdrawal",
        )
        return entry.to_receipt()

    def _record(self, user, kind, amount, escrow_id=None, description=None, destination=None):
        entry = WalletTransaction(
            user_id=user.user_id,
            kind=kind,
            amount=amount,
            balance_after=user.wallet_balance,
            escrow_id=escrow_id,
            destination=destination,
            description=description,
        )
        self.session.add(entry)
        self.session.flush()
        return entry
