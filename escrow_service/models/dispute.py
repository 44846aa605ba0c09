"""
Dispute Models — Escrow Service
Dispute status: PENDING | RESOLVED | REJECTED
Comments are append-only and cascade with their dispute.
"""

import enum
import uuid
from datetime import datetime, timezone
from escrow_service.extensions import db


class DisputeStatus(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class DisputeRaiser(enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"


class Dispute(db.Model):
    __tablename__ = "disputes"

    dispute_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    escrow_id = db.Column(db.Uuid, db.ForeignKey("escrows.escrow_id"), nullable=False)
    raised_by = db.Column(db.Enum(DisputeRaiser, name="dispute_raiser"), nullable=False)
    user_id = db.Column(db.Uuid, db.ForeignKey("users.user_id"), nullable=False)
    reason = db.Column(db.Text, nullable=False)
    evidence = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(
        db.Enum(DisputeStatus, name="dispute_status"),
        nullable=False,
        default=DisputeStatus.PENDING
    )
    admin_notes = db.Column(db.Text, nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
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

    escrow = db.relationship("Escrow", back_populates="disputes")
    user = db.relationship("User")
    comments = db.relationship(
        "DisputeComment",
        back_populates="dispute",
        cascade="all, delete-orphan",
        order_by="DisputeComment.created_at",
    )

    # At most one open dispute per escrow
    __table_args__ = (
        db.Index(
            "uq_disputes_pending_escrow",
            "escrow_id",
            unique=True,
            postgresql_where=db.text("status = 'PENDING'"),
            sqlite_where=db.text("status = 'PENDING'"),
        ),
    )

    def to_dict(self, include_comments=False):
        data = {
            "dispute_id":  str(self.dispute_id),
            "escrow_id":   str(self.escrow_id),
            "raised_by":   self.raised_by.value,
            "user_id":     str(self.user_id),
            "user_name":   self.user.name if self.user else None,
            "reason":      self.reason,
            "evidence":    list(self.evidence or []),
            "status":      self.status.value,
            "admin_notes": self.admin_notes,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "created_at":  self.created_at.isoformat(),
            "updated_at":  self.updated_at.isoformat(),
        }
        if include_comments:
            data["comments"] = [c.to_dict() for c in self.comments]
        return data


class DisputeComment(db.Model):
    __tablename__ = "dispute_comments"

    comment_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    dispute_id = db.Column(
        db.Uuid,
        db.ForeignKey("disputes.dispute_id", ondelete="CASCADE"),
        nullable=False
    )
    user_id = db.Column(db.Uuid, db.ForeignKey("users.user_id"), nullable=False)
    # Role of the author when the comment was posted
    user_role = db.Column(db.String(20), nullable=False)
    content = db.Column(db.Text, nullable=False)
    attachments = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    dispute = db.relationship("Dispute", back_populates="comments")
    user = db.relationship("User")

    def to_dict(self):
        return {
            "comment_id":  str(self.comment_id),
            "dispute_id":  str(self.dispute_id),
            "user_id":     str(self.user_id),
            "user_name":   self.user.name if self.user else None,
            "user_role":   self.user_role,
            "content":     self.content,
            "attachments": list(self.attachments or []),
            "created_at":  self.created_at.isoformat(),
        }
