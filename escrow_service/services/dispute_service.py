"""
Dispute Resolution Workflow
A dispute overrides the normal escrow lifecycle: opening one forces the escrow
into DISPUTED, and the admin's outcome decides who receives the escrow amount.
"""

import logging
from sqlalchemy import select, or_

from escrow_service.errors import Conflict, Forbidden, NotFound, ValidationError
from escrow_service.models import (
    Dispute,
    DisputeComment,
    DisputeRaiser,
    DisputeStatus,
    Escrow,
    EscrowStatus,
)
from escrow_service.services.unit_of_work import atomic
from escrow_service.services.validation import parse_references, parse_uuid

logger = logging.getLogger(__name__)

# DISPUTED covers an escrow flagged by a plain status change, before any
# dispute was recorded.
DISPUTABLE_STATUSES = frozenset({
    EscrowStatus.AWAITING_DELIVERY,
    EscrowStatus.DELIVERED,
    EscrowStatus.DISPUTED,
})

# (outcome, raised_by) -> final escrow status.
# "resolved" upholds the raiser's claim, "rejected" denies it.
SETTLEMENT_MATRIX = {
    (DisputeStatus.RESOLVED, DisputeRaiser.BUYER): EscrowStatus.REFUNDED,
    (DisputeStatus.RESOLVED, DisputeRaiser.SELLER): EscrowStatus.COMPLETED,
    (DisputeStatus.REJECTED, DisputeRaiser.BUYER): EscrowStatus.COMPLETED,
    (DisputeStatus.REJECTED, DisputeRaiser.SELLER): EscrowStatus.REFUNDED,
}


class DisputeWorkflow:

    def __init__(self, session, engine, policy):
        self.session = session
        self.engine = engine
        self.policy = policy

    # --- Queries ------------------------------------------------------------

    def get_dispute(self, dispute_id, actor):
        dispute = self.session.get(Dispute, parse_uuid(dispute_id, "dispute id"))
        if dispute is None:
            raise NotFound("Dispute not found")
        if not self.policy.can_view_dispute(actor, dispute):
            raise Forbidden("Not authorized to view this dispute")
        return dispute

    def list_disputes(self, actor):
        stmt = select(Dispute).join(Escrow, Dispute.escrow_id == Escrow.escrow_id)
        if self.policy.is_admin(actor):
            # Pending first, newest first
            stmt = stmt.order_by(Dispute.status, Dispute.created_at.desc())
        else:
            stmt = stmt.where(or_(
                Dispute.user_id == actor.user_id,
                Escrow.buyer_id == actor.user_id,
                Escrow.seller_id == actor.user_id,
            )).order_by(Dispute.created_at.desc())
        return self.session.scalars(stmt).all()

    def list_all_disputes(self, actor):
        self.policy.require_admin(actor)
        return self.list_disputes(actor)

    def list_comments(self, dispute_id, actor):
        dispute = self.get_dispute(dispute_id, actor)
        stmt = (
            select(DisputeComment)
            .where(DisputeComment.dispute_id == dispute.dispute_id)
            .order_by(DisputeComment.created_at.asc())
        )
        return self.session.scalars(stmt).all()

    # --- Commands -----------------------------------------------------------

    def open_dispute(self, escrow_id, actor, reason, evidence=None):
        if not reason or not isinstance(reason, str) or not reason.strip():
            raise ValidationError("Escrow ID and reason are required")
        evidence = parse_references(evidence, "evidence")
        escrow_id = parse_uuid(escrow_id, "escrow id")

        with atomic(self.session):
            escrow = self.engine.lock(escrow_id)
            party = escrow.party_of(actor.user_id)
            if party is None:
                raise Forbidden("Not authorized to create dispute for this escrow")
            if self._pending_dispute(escrow.escrow_id) is not None:
                raise Conflict("A dispute is already open for this escrow")
            if escrow.status not in DISPUTABLE_STATUSES:
                raise Conflict(f"Cannot dispute an escrow that is {escrow.status.value}")

            dispute = Dispute(
                escrow_id=escrow.escrow_id,
                raised_by=DisputeRaiser(party),
                user_id=actor.user_id,
                reason=reason.strip(),
                evidence=evidence,
                status=DisputeStatus.PENDING,
            )
            self.session.add(dispute)
            if escrow.status != EscrowStatus.DISPUTED:
                self.engine.force(escrow, EscrowStatus.DISPUTED)

        logger.info("Dispute %s opened on escrow %s by %s", dispute.dispute_id, escrow_id, party)
        return dispute

    def resolve_dispute(self, dispute_id, actor, outcome, admin_notes=None):
        """
        Close a pending dispute and settle its escrow per SETTLEMENT_MATRIX.
        Dispute, escrow and ledger change together or not at all.
        """
        self.policy.require_admin(actor)
        outcome = self._parse_outcome(outcome)
        dispute_id = parse_uuid(dispute_id, "dispute id")

        with atomic(self.session):
            dispute = self.session.get(Dispute, dispute_id, with_for_update=True, populate_existing=True)
            if dispute is None:
                raise NotFound("Dispute not found")
            if dispute.status != DisputeStatus.PENDING:
                raise Conflict("This dispute has already been resolved")

            escrow = self.engine.lock(dispute.escrow_id)
            if escrow.status.is_terminal:
                raise Conflict(f"Escrow is already {escrow.status.value}")

            final_status = SETTLEMENT_MATRIX[(outcome, dispute.raised_by)]
            now = self.engine.clock()
            dispute.status = outcome
            dispute.admin_notes = admin_notes or dispute.admin_notes
            dispute.resolved_at = now
            dispute.updated_at = now
            self.engine.force(escrow, final_status)

        logger.info("Dispute %s %s (raised by %s): escrow %s -> %s",
                    dispute_id, outcome.value, dispute.raised_by.value,
                    dispute.escrow_id, final_status.value)
        return dispute

    def add_comment(self, dispute_id, actor, content, attachments=None):
        if not content or not isinstance(content, str) or not content.strip():
            raise ValidationError("Comment content is required")
        attachments = parse_references(attachments, "attachments")

        with atomic(self.session):
            dispute = self.session.get(Dispute, parse_uuid(dispute_id, "dispute id"))
            if dispute is None:
                raise NotFound("Dispute not found")
            if not self.policy.can_view_dispute(actor, dispute):
                raise Forbidden("Not authorized to comment on this dispute")
            comment = DisputeComment(
                dispute_id=dispute.dispute_id,
                user_id=actor.user_id,
                user_role=actor.role.value,
                content=content.strip(),
                attachments=attachments,
            )
            self.session.add(comment)
        return comment

    def _pending_dispute(self, escrow_id):
        stmt = select(Dispute).where(
            Dispute.escrow_id == escrow_id,
            Dispute.status == DisputeStatus.PENDING,
        )
        return self.session.scalars(stmt).first()

    @staticmethod
    def _parse_outcome(outcome):
        if isinstance(outcome, DisputeStatus) and outcome != DisputeStatus.PENDING:
            return outcome
        if outcome in ("resolved", "rejected"):
            return DisputeStatus(outcome)
        raise ValidationError("Valid status (resolved/rejected) is required")
