"""
Wallet Transaction Model — Escrow Service
Append-only journal of every ledger movement. A withdrawal row doubles as its receipt.
"""

import enum
import uuid
from datetime import datetime, timezone
from escrow_service.extensions import db


class TransactionKind(enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    WITHDRAWAL = "withdrawal"


class WalletTransaction(db.Model):
    __tablename__ = "wallet_transactions"

    transaction_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    user_id = db.Column(db.Uuid, db.ForeignKey("users.user_id"), nullable=False, index=True)
    kind = db.Column(db.Enum(TransactionKind, name="wallet_transaction_kind"), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    balance_after = db.Column(db.Numeric(12, 2), nullable=False)
    escrow_id = db.Column(db.Uuid, db.ForeignKey("escrows.escrow_id"), nullable=True)
    destination = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            "transaction_id": str(self.transaction_id),
            "user_id":        str(self.user_id),
            "kind":           self.kind.value,
            "amount":         float(self.amount),
            "balance_after":  float(self.balance_after),
            "escrow_id":      str(self.escrow_id) if self.escrow_id else None,
            "destination":    self.destination,
            "description":    self.description,
            "created_at":     self.created_at.isoformat(),
        }

    def to_receipt(self):
        return {
            "id":          str(self.transaction_id),
            "amount":      float(self.amount),
            "status":      "completed",
            "destination": self.destination,
            "timestamp":   self.created_at.isoformat(),
        }
