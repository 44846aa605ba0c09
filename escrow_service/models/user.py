import enum
import uuid
from datetime import datetime, timezone
from escrow_service.extensions import db


class Role(enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class User(db.Model):
    __tablename__ = 'users'

    user_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(db.Enum(Role, name="user_role"), nullable=False, default=Role.BUYER)
    # Mutated only through services.ledger.Ledger
    wallet_balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            'user_id': str(self.user_id),
            'name': self.name,
            'email': self.email,
            'role': self.role.value,
            'wallet_balance': float(self.wallet_balance) if self.wallet_balance else 0.0,
        }
