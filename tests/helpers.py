import unittest
from datetime import timedelta
from decimal import Decimal

from flask_jwt_extended import create_access_token

from escrow_service.app import create_app
from escrow_service.extensions import db
from escrow_service.models import Product, Role, User
from escrow_service.services import Actor, build_services
from escrow_service.services.escrow_engine import utcnow

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "JWT_SECRET_KEY": "test-secret-key-that-is-long-enough-for-hs256",
    "LOG_LEVEL": "WARNING",
}


class EscrowTestCase(unittest.TestCase):
    """In-memory app with a buyer, a seller, an admin, an outsider and two products."""

    def setUp(self):
        self.app = create_app(TEST_CONFIG)
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.create_all()

        self.buyer = self.make_user("Buyer", Role.BUYER)
        self.seller = self.make_user("Seller", Role.SELLER)
        self.admin = self.make_user("Admin", Role.ADMIN)
        self.outsider = self.make_user("Outsider", Role.BUYER)

        # 2 x 40.00 + 1 x 20.00 = 100.00
        self.product_a = Product(name="Camera", price=Decimal("40.00"), seller_id=self.seller.user_id)
        self.product_b = Product(name="Lens", price=Decimal("20.00"), seller_id=self.seller.user_id)
        db.session.add_all([self.product_a, self.product_b])
        db.session.commit()

        self.buyer_id = self.buyer.user_id
        self.seller_id = self.seller.user_id
        self.admin_id = self.admin.user_id
        self.outsider_id = self.outsider.user_id

        self.as_buyer = Actor(self.buyer_id, Role.BUYER)
        self.as_seller = Actor(self.seller_id, Role.SELLER)
        self.as_admin = Actor(self.admin_id, Role.ADMIN)
        self.as_outsider = Actor(self.outsider_id, Role.BUYER)

        self.services = build_services(db.session)

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def make_user(self, name, role):
        user = User(name=name, email=f"{name.lower()}@example.com", role=role)
        db.session.add(user)
        db.session.commit()
        return user

    def line_items(self):
        return [
            {"product_id": str(self.product_a.product_id), "quantity": 2},
            {"product_id": str(self.product_b.product_id)},
        ]

    def create_escrow(self, days=14):
        return self.services.escrows.create_escrow(
            self.as_buyer, self.seller_id, self.line_items(), escrow_period_days=days
        )

    def balance(self, user_id):
        db.session.expire_all()
        return self.services.ledger.get_balance(user_id)

    def later(self, days):
        return utcnow() + timedelta(days=days)

    def token_for(self, user_id):
        return create_access_token(identity=str(user_id))

    def auth(self, user_id):
        return {"Authorization": f"Bearer {self.token_for(user_id)}"}
