import uuid
from decimal import Decimal

from sqlalchemy import select, update

from escrow_service.errors import Conflict, Forbidden, NotFound, ValidationError
from escrow_service.extensions import db
from escrow_service.models import Dispute, DisputeRaiser, DisputeStatus, Escrow, EscrowStatus
from escrow_service.services.unit_of_work import atomic
from tests.helpers import EscrowTestCase


class DisputeTestCase(EscrowTestCase):

    def setUp(self):
        super().setUp()
        self.escrow_id = self.create_escrow().escrow_id

    def open(self, actor, reason="not as described", evidence=None):
        return self.services.disputes.open_dispute(self.escrow_id, actor, reason, evidence)

    def escrow_status(self):
        db.session.expire_all()
        return db.session.get(Escrow, self.escrow_id).status


class TestOpenDispute(DisputeTestCase):

    def test_buyer_opens_dispute(self):
        dispute = self.open(self.as_buyer, evidence=["https://files.example.com/photo.jpg"])

        self.assertEqual(dispute.raised_by, DisputeRaiser.BUYER)
        self.assertEqual(dispute.status, DisputeStatus.PENDING)
        self.assertEqual(dispute.evidence, ["https://files.example.com/photo.jpg"])
        self.assertEqual(self.escrow_status(), EscrowStatus.DISPUTED)

    def test_raised_by_comes_from_escrow(self):
        dispute = self.open(self.as_seller)
        self.assertEqual(dispute.raised_by, DisputeRaiser.SELLER)

    def test_outsider_cannot_open(self):
        with self.assertRaises(Forbidden):
            self.open(self.as_outsider)
        self.assertEqual(self.escrow_status(), EscrowStatus.AWAITING_DELIVERY)

    def test_second_pending_dispute_conflicts(self):
        self.open(self.as_buyer)
        with self.assertRaises(Conflict):
            self.open(self.as_seller)

    def test_pending_disputes_are_unique_per_escrow_in_storage(self):
        self.open(self.as_buyer)
        with self.assertRaises(Conflict):
            with atomic(db.session):
                db.session.add(Dispute(
                    escrow_id=self.escrow_id,
                    raised_by=DisputeRaiser.SELLER,
                    user_id=self.seller_id,
                    reason="duplicate",
                    status=DisputeStatus.PENDING,
                ))
                db.session.flush()

        pending = db.session.scalars(
            select(Dispute).where(Dispute.escrow_id == self.escrow_id)
        ).all()
        self.assertEqual(len(pending), 1)

    def test_dispute_recorded_on_escrow_flagged_by_status_change(self):
        self.services.escrows.transition(self.escrow_id, self.as_seller, "disputed")

        dispute = self.open(self.as_buyer)
        self.assertEqual(dispute.status, DisputeStatus.PENDING)
        self.assertEqual(dispute.raised_by, DisputeRaiser.BUYER)
        self.assertEqual(self.escrow_status(), EscrowStatus.DISPUTED)

        self.services.disputes.resolve_dispute(dispute.dispute_id, self.as_admin, "resolved")
        self.assertEqual(self.escrow_status(), EscrowStatus.REFUNDED)
        self.assertEqual(self.balance(self.buyer_id), Decimal("100.00"))

    def test_settled_escrow_cannot_be_disputed(self):
        self.services.escrows.transition(self.escrow_id, self.as_seller, "delivered")
        self.services.escrows.transition(self.escrow_id, self.as_buyer, "completed")
        with self.assertRaises(Conflict):
            self.open(self.as_buyer)

    def test_reason_is_required(self):
        with self.assertRaises(ValidationError):
            self.open(self.as_buyer, reason="  ")

    def test_evidence_must_be_references(self):
        with self.assertRaises(ValidationError):
            self.open(self.as_buyer, evidence="photo.jpg")

    def test_unknown_escrow(self):
        with self.assertRaises(NotFound):
            self.services.disputes.open_dispute(uuid.uuid4(), self.as_buyer, "missing")


class TestResolveDispute(DisputeTestCase):

    def resolve(self, dispute, outcome, notes=None):
        return self.services.disputes.resolve_dispute(dispute.dispute_id, self.as_admin, outcome, notes)

    def assert_settled(self, status, credited, other):
        self.assertEqual(self.escrow_status(), status)
        self.assertEqual(self.balance(credited), Decimal("100.00"))
        self.assertEqual(self.balance(other), Decimal("0"))

    def test_resolved_buyer_claim_refunds_buyer(self):
        dispute = self.open(self.as_buyer)
        resolved = self.resolve(dispute, "resolved", "item never shipped")

        self.assert_settled(EscrowStatus.REFUNDED, self.buyer_id, self.seller_id)
        self.assertEqual(resolved.status, DisputeStatus.RESOLVED)
        self.assertEqual(resolved.admin_notes, "item never shipped")
        self.assertIsNotNone(resolved.resolved_at)

    def test_resolved_seller_claim_pays_seller(self):
        dispute = self.open(self.as_seller)
        self.resolve(dispute, "resolved")
        self.assert_settled(EscrowStatus.COMPLETED, self.seller_id, self.buyer_id)

    def test_rejected_buyer_claim_pays_seller(self):
        dispute = self.open(self.as_buyer)
        self.resolve(dispute, "rejected")
        self.assert_settled(EscrowStatus.COMPLETED, self.seller_id, self.buyer_id)

    def test_rejected_seller_claim_refunds_buyer(self):
        dispute = self.open(self.as_seller)
        self.resolve(dispute, "rejected")
        self.assert_settled(EscrowStatus.REFUNDED, self.buyer_id, self.seller_id)

    def test_second_resolution_conflicts(self):
        dispute = self.open(self.as_buyer)
        self.resolve(dispute, "resolved")

        with self.assertRaises(Conflict):
            self.resolve(dispute, "rejected")
        self.assert_settled(EscrowStatus.REFUNDED, self.buyer_id, self.seller_id)

    def test_only_admin_resolves(self):
        dispute = self.open(self.as_buyer)
        with self.assertRaises(Forbidden):
            self.services.disputes.resolve_dispute(dispute.dispute_id, self.as_buyer, "resolved")

    def test_outcome_must_be_terminal(self):
        dispute = self.open(self.as_buyer)
        for outcome in ("pending", "approved", None):
            with self.assertRaises(ValidationError):
                self.resolve(dispute, outcome)

    def test_escrow_settled_elsewhere_conflicts(self):
        dispute = self.open(self.as_buyer)
        db.session.execute(
            update(Escrow)
            .where(Escrow.escrow_id == self.escrow_id)
            .values(status=EscrowStatus.COMPLETED)
        )
        db.session.commit()

        with self.assertRaises(Conflict):
            self.resolve(dispute, "resolved")
        self.assertEqual(self.balance(self.buyer_id), Decimal("0"))

    def test_admin_transition_cannot_bypass_pending_dispute(self):
        dispute = self.open(self.as_buyer)
        for status in ("completed", "refunded", "delivered", "canceled"):
            with self.assertRaises(Conflict):
                self.services.escrows.transition(self.escrow_id, self.as_admin, status)
        self.assertEqual(self.escrow_status(), EscrowStatus.DISPUTED)
        self.assertEqual(self.balance(self.seller_id), Decimal("0"))

        self.resolve(dispute, "resolved")
        self.assert_settled(EscrowStatus.REFUNDED, self.buyer_id, self.seller_id)

    def test_completed_escrow_refuses_new_dispute(self):
        dispute = self.open(self.as_buyer)
        self.services.disputes.resolve_dispute(dispute.dispute_id, self.as_admin, "rejected")
        with self.assertRaises(Conflict):
            self.open(self.as_buyer)


class TestDisputeComments(DisputeTestCase):

    def setUp(self):
        super().setUp()
        self.dispute_id = self.open(self.as_buyer).dispute_id

    def comment(self, actor, content="see attached", attachments=None):
        return self.services.disputes.add_comment(self.dispute_id, actor, content, attachments)

    def test_parties_and_admin_comment_in_order(self):
        self.comment(self.as_buyer, "first")
        self.comment(self.as_seller, "second", ["https://files.example.com/tracking.pdf"])
        self.comment(self.as_admin, "third")

        comments = self.services.disputes.list_comments(self.dispute_id, self.as_buyer)
        self.assertEqual([c.content for c in comments], ["first", "second", "third"])
        self.assertEqual([c.user_role for c in comments], ["buyer", "seller", "admin"])
        self.assertEqual(comments[1].attachments, ["https://files.example.com/tracking.pdf"])

    def test_outsider_cannot_comment_or_read(self):
        with self.assertRaises(Forbidden):
            self.comment(self.as_outsider)
        with self.assertRaises(Forbidden):
            self.services.disputes.list_comments(self.dispute_id, self.as_outsider)

    def test_comment_after_resolution(self):
        self.services.disputes.resolve_dispute(self.dispute_id, self.as_admin, "resolved")
        comment = self.comment(self.as_seller, "for the record")
        self.assertEqual(comment.content, "for the record")

    def test_empty_comment(self):
        with self.assertRaises(ValidationError):
            self.comment(self.as_buyer, "")

    def test_dispute_visibility(self):
        self.assertEqual(len(self.services.disputes.list_disputes(self.as_seller)), 1)
        self.assertEqual(len(self.services.disputes.list_disputes(self.as_outsider)), 0)
        self.assertEqual(len(self.services.disputes.list_all_disputes(self.as_admin)), 1)
        with self.assertRaises(Forbidden):
            self.services.disputes.get_dispute(self.dispute_id, self.as_outsider)
