"""
Escrow Model — Escrow Service
Status: PENDING | AWAITING_DELIVERY | DELIVERED | COMPLETED | DISPUTED | REFUNDED | CANCELED | EXPIRED
"""

import enum
import uuid
from datetime import datetime, timezone
from escrow_service.extensions import db


class EscrowStatus(enum.Enum):
    PENDING = "pending"
    AWAITING_DELIVERY = "awaiting_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    DISPUTED = "disputed"
    REFUNDED = "refunded"
    CANCELED = "canceled"
    EXPIRED = "expired"

    @property
    def is_terminal(self):
        return self in TERMINAL_STATUSES

    @property
    def is_settled(self):
        return self in SETTLED_STATUSES


TERMINAL_STATUSES = frozenset({
    EscrowStatus.COMPLETED,
    EscrowStatus.REFUNDED,
    EscrowStatus.CANCELED,
    EscrowStatus.EXPIRED,
})

# Terminal states in which the escrow amount has already been paid out
SETTLED_STATUSES = frozenset({
    EscrowStatus.COMPLETED,
    EscrowStatus.REFUNDED,
    EscrowStatus.EXPIRED,
})


class Escrow(db.Model):
    __tablename__ = "escrows"

    escrow_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    buyer_id = db.Column(db.Uuid, db.ForeignKey("users.user_id"), nullable=False)
    seller_id = db.Column(db.Uuid, db.ForeignKey("users.user_id"), nullable=False)
    status = db.Column(
        db.Enum(EscrowStatus, name="escrow_status"),
        nullable=False,
        default=EscrowStatus.AWAITING_DELIVERY
    )
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    line_items = db.relationship(
        "EscrowProduct",
        back_populates="escrow",
        cascade="all, delete-orphan",
        order_by="EscrowProduct.position",
    )
    buyer = db.relationship("User", foreign_keys=[buyer_id])
    seller = db.relationship("User", foreign_keys=[seller_id])
    disputes = db.relationship(
        "Dispute",
        back_populates="escrow",
        order_by="Dispute.created_at",
    )

    __table_args__ = (
        db.CheckConstraint("buyer_id <> seller_id", name="ck_escrow_distinct_parties"),
    )

    def party_of(self, user_id):
        """Return 'buyer', 'seller' or None for the given user."""
        if user_id == self.buyer_id:
            return "buyer"
        if user_id == self.seller_id:
            return "seller"
        return None

    def to_dict(self, include_disputes=False):
        data = {
            "escrow_id":   str(self.escrow_id),
            "products":    [item.to_dict() for item in self.line_items],
            "amount":      float(self.amount),
            "buyer_id":    str(self.buyer_id),
            "buyer_name":  self.buyer.name if self.buyer else None,
            "seller_id":   str(self.seller_id),
            "seller_name": self.seller.name if self.seller else None,
            "status":      self.status.value,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "created_at":  self.created_at.isoformat(),
            "updated_at":  self.updated_at.isoformat(),
        }
        if include_disputes:
            data["disputes"] = [d.to_dict() for d in self.disputes]
        return data


class EscrowProduct(db.Model):
    """Line item with the unit price captured when the escrow was created."""
    __tablename__ = "escrow_products"

    id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    escrow_id = db.Column(
        db.Uuid,
        db.ForeignKey("escrows.escrow_id", ondelete="CASCADE"),
        nullable=False
    )
    product_id = db.Column(db.Uuid, db.ForeignKey("products.product_id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    escrow = db.relationship("Escrow", back_populates="line_items")
    product = db.relationship("Product")

    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_escrow_product_quantity"),
    )

    def to_dict(self):
        return {
            "id":            str(self.id),
            "product_id":    str(self.product_id),
            "product_name":  self.product.name if self.product else None,
            "product_image": self.product.image if self.product else None,
            "price":         float(self.price),
            "quantity":      self.quantity,
        }
