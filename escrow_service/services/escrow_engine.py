"""
Escrow Lifecycle Engine
Owns escrow status: creation, the authorised transition table, and the
settlement each terminal status carries.

Status writes are compare-and-set against the status that was read, and run in
the same unit of work as the ledger credit they imply.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import select, or_, update

from escrow_service.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from escrow_service.models import Dispute, DisputeStatus, Escrow, EscrowProduct, EscrowStatus
from escrow_service.services.unit_of_work import atomic
from escrow_service.services.validation import parse_positive_int, parse_uuid

logger = logging.getLogger(__name__)

DEFAULT_ESCROW_PERIOD_DAYS = 14

# (current, requested) -> parties of the escrow allowed to take the edge.
# Administrators are not bound by this table.
TRANSITIONS = {
    (EscrowStatus.AWAITING_DELIVERY, EscrowStatus.DELIVERED): frozenset({"seller"}),
    (EscrowStatus.DELIVERED, EscrowStatus.COMPLETED): frozenset({"buyer"}),
    (EscrowStatus.AWAITING_DELIVERY, EscrowStatus.DISPUTED): frozenset({"buyer", "seller"}),
    (EscrowStatus.DELIVERED, EscrowStatus.DISPUTED): frozenset({"buyer", "seller"}),
    (EscrowStatus.PENDING, EscrowStatus.CANCELED): frozenset({"buyer"}),
    (EscrowStatus.AWAITING_DELIVERY, EscrowStatus.CANCELED): frozenset({"buyer"}),
}

# Party credited with the escrow amount on entering a status
SETTLEMENTS = {
    EscrowStatus.COMPLETED: "seller",
    EscrowStatus.REFUNDED: "buyer",
    EscrowStatus.EXPIRED: "buyer",
}


def utcnow():
    return datetime.now(timezone.utc)


def parse_status(value):
    if isinstance(value, EscrowStatus):
        return value
    if not isinstance(value, str):
        raise ValidationError("Valid status is required")
    try:
        return EscrowStatus(value.strip().lower())
    except ValueError:
        raise ValidationError("Valid status is required")


class EscrowEngine:

    def __init__(self, session, ledger, catalog, directory, policy,
                 default_period_days=DEFAULT_ESCROW_PERIOD_DAYS, clock=utcnow):
        self.session = session
        self.ledger = ledger
        self.catalog = catalog
        self.directory = directory
        self.policy = policy
        self.default_period_days = default_period_days
        self.clock = clock

    # --- Queries ------------------------------------------------------------

    def get_escrow(self, escrow_id, actor):
        escrow = self.session.get(Escrow, parse_uuid(escrow_id, "escrow id"))
        if escrow is None:
            raise NotFound("Escrow not found")
        if not self.policy.can_view_escrow(actor, escrow):
            raise Forbidden("Not authorized to view this escrow")
        return escrow

    def list_escrows(self, actor):
        """Escrows visible to the actor: all for admins, otherwise those they are a party to."""
        stmt = select(Escrow).order_by(Escrow.created_at.desc())
        if not self.policy.is_admin(actor):
            stmt = stmt.where(or_(Escrow.buyer_id == actor.user_id, Escrow.seller_id == actor.user_id))
        return self.session.scalars(stmt).all()

    def list_all_escrows(self, actor):
        self.policy.require_admin(actor)
        return self.list_escrows(actor)

    # --- Commands -----------------------------------------------------------

    def create_escrow(self, actor, seller_id, line_items, escrow_period_days=None):
        """
        Open an escrow for the actor as buyer.
        Unit prices are copied from the catalog now; later catalog edits never
        reach an existing escrow.
        """
        if not self.policy.can_create_escrow(actor):
            raise Forbidden("Only buyers can create escrows")
        if not line_items or not isinstance(line_items, (list, tuple)):
            raise ValidationError("Products array is required")
        if seller_id is None:
            raise ValidationError("Seller ID is required")
        if escrow_period_days is None:
            escrow_period_days = self.default_period_days
        period = parse_positive_int(escrow_period_days, "Escrow period")

        seller_id = parse_uuid(seller_id, "seller id")
        if seller_id == actor.user_id:
            raise ValidationError("Buyer and seller must be different accounts")
        try:
            self.directory.get_account(seller_id)
        except NotFound:
            raise ValidationError("Seller not found")

        with atomic(self.session):
            escrow = Escrow(
                buyer_id=actor.user_id,
                seller_id=seller_id,
                status=EscrowStatus.AWAITING_DELIVERY,
                expiry_date=self.clock() + timedelta(days=period),
            )
            total = Decimal("0")
            for position, item in enumerate(line_items):
                product_id, quantity = self._parse_line_item(item)
                try:
                    product = self.catalog.get_item(product_id)
                except NotFound as e:
                    raise ValidationError(e.message)
                price = Decimal(product.price)
                total += price * quantity
                escrow.line_items.append(EscrowProduct(
                    product_id=product.product_id,
                    position=position,
                    price=price,
                    quantity=quantity,
                ))
            if total <= 0:
                raise ValidationError("Escrow amount must be greater than zero")
            escrow.amount = total
            self.session.add(escrow)

        logger.info("Escrow %s created: buyer=%s seller=%s amount=%s",
                    escrow.escrow_id, escrow.buyer_id, escrow.seller_id, escrow.amount)
        return escrow

    def transition(self, escrow_id, actor, requested_status):
        requested = parse_status(requested_status)
        escrow_id = parse_uuid(escrow_id, "escrow id")
        with atomic(self.session):
            escrow = self.lock(escrow_id)
            current = escrow.status
            self._authorize(escrow, actor, current, requested)
            self._apply(escrow, current, requested)
        logger.info("Escrow %s: %s -> %s by %s",
                    escrow_id, current.value, requested.value, actor.user_id)
        return escrow

    def extend_expiry(self, escrow_id, actor, days):
        self.policy.require_admin(actor, "Not authorized to update escrow expiry date")
        days = parse_positive_int(days, "Valid number of days")
        with atomic(self.session):
            escrow = self.lock(parse_uuid(escrow_id, "escrow id"))
            now = self.clock()
            escrow.expiry_date = now + timedelta(days=days)
            escrow.updated_at = now
        logger.info("Escrow %s expiry extended by %d days", escrow.escrow_id, days)
        return escrow

    # --- Administrative path ------------------------------------------------

    def lock(self, escrow_id):
        """Load an escrow row FOR UPDATE. Must be called inside a unit of work."""
        escrow = self.session.get(Escrow, escrow_id, with_for_update=True, populate_existing=True)
        if escrow is None:
            raise NotFound("Escrow not found")
        return escrow

    def force(self, escrow, requested, extra_criteria=()):
        """
        Move an escrow to `requested` without consulting the transition table.
        Used by the dispute workflow and the expiry sweeper; the caller holds
        the unit of work.
        """
        self._apply(escrow, escrow.status, requested, extra_criteria)

    def _authorize(self, escrow, actor, current, requested):
        is_admin = self.policy.is_admin(actor)
        if not is_admin and escrow.party_of(actor.user_id) is None:
            logger.warning("Actor %s is not a party to escrow %s", actor.user_id, escrow.escrow_id)
            raise Forbidden("Not authorized to update this escrow status")
        if requested == current:
            raise Conflict(f"Escrow is already {current.value}")
        if self._has_pending_dispute(escrow.escrow_id):
            raise Conflict("Escrow has a pending dispute; resolve the dispute to settle it")
        if is_admin:
            if current.is_settled:
                raise Conflict(f"Escrow has already been settled as {current.value}")
            return
        allowed = TRANSITIONS.get((current, requested))
        if allowed is None:
            raise InvalidTransition(f"Cannot transition from {current.value} to {requested.value}")
        if escrow.party_of(actor.user_id) not in allowed:
            logger.warning("Actor %s refused %s -> %s on escrow %s",
                           actor.user_id, current.value, requested.value, escrow.escrow_id)
            raise Forbidden("Not authorized to update this escrow status")

    def _has_pending_dispute(self, escrow_id):
        stmt = select(Dispute.dispute_id).where(
            Dispute.escrow_id == escrow_id,
            Dispute.status == DisputeStatus.PENDING,
        )
        return self.session.scalar(stmt) is not None

    def _apply(self, escrow, current, requested, extra_criteria=()):
        result = self.session.execute(
            update(Escrow)
            .where(Escrow.escrow_id == escrow.escrow_id, Escrow.status == current, *extra_criteria)
            .values(status=requested, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict("Escrow was modified concurrently")
        self.session.expire(escrow, ["status", "updated_at"])

        party = SETTLEMENTS.get(requested)
        if party is not None:
            account_id = escrow.seller_id if party == "seller" else escrow.buyer_id
            self.ledger.credit(
                account_id,
                escrow.amount,
                escrow_id=escrow.escrow_id,
                description=f"Escrow {escrow.escrow_id} {requested.value}",
            )

    @staticmethod
    def _parse_line_item(item):
        if not isinstance(item, dict) or not item.get("product_id"):
            raise ValidationError("Product ID is required for each product")
        quantity = item.get("quantity")
        if quantity is None:
            quantity = 1
        quantity = parse_positive_int(quantity, "Quantity")
        return parse_uuid(item["product_id"], "product id"), quantity
