"""
Expiry Sweeper
Expires escrows still awaiting delivery past their deadline and refunds the buyer.
Each escrow is claimed and settled in its own unit of work.
"""

import logging
from sqlalchemy import select

from escrow_service.errors import Conflict, Forbidden
from escrow_service.models import Escrow, EscrowStatus
from escrow_service.services.unit_of_work import atomic

logger = logging.getLogger(__name__)


class ExpirySweeper:

    def __init__(self, session, engine, policy):
        self.session = session
        self.engine = engine
        self.policy = policy

    def find_overdue(self, now):
        stmt = (
            select(Escrow.escrow_id)
            .where(
                Escrow.status == EscrowStatus.AWAITING_DELIVERY,
                Escrow.expiry_date.is_not(None),
                Escrow.expiry_date < now,
            )
            .order_by(Escrow.expiry_date)
        )
        return self.session.scalars(stmt).all()

    def sweep_expired(self, now=None, actor=None):
        """Expire and refund every overdue escrow. Returns how many were processed."""
        if not self.policy.can_sweep(actor):
            raise Forbidden("Access denied")
        now = now or self.engine.clock()

        processed = 0
        for escrow_id in self.find_overdue(now):
            if self._expire(escrow_id, now):
                processed += 1

        logger.info("Expiry sweep at %s processed %d escrows", now.isoformat(), processed)
        return processed

    def _expire(self, escrow_id, now):
        try:
            with atomic(self.session):
                escrow = self.session.scalars(
                    select(Escrow)
                    .where(Escrow.escrow_id == escrow_id)
                    .with_for_update(skip_locked=True)
                    .execution_options(populate_existing=True)
                ).first()
                if escrow is None or escrow.status != EscrowStatus.AWAITING_DELIVERY:
                    return False
                self.engine.force(escrow, EscrowStatus.EXPIRED, extra_criteria=(Escrow.expiry_date < now,))
        except Conflict:
            # Another request moved the escrow between selection and claim
            logger.info("Escrow %s left AWAITING_DELIVERY before expiry; skipped", escrow_id)
            return False
        logger.info("Escrow %s expired; buyer refunded", escrow_id)
        return True
