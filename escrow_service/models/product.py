"""
Catalog item, owned by the catalog service.
The escrow core only reads it to snapshot prices.
"""

import uuid
from datetime import datetime, timezone
from escrow_service.extensions import db


class Product(db.Model):
    __tablename__ = 'products'

    product_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    price = db.Column(db.Numeric(12, 2), nullable=False)
    image = db.Column(db.String(512), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    seller_id = db.Column(db.Uuid, db.ForeignKey('users.user_id'), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            'product_id': str(self.product_id),
            'name': self.name,
            'price': float(self.price),
            'image': self.image,
            'category': self.category,
            'seller_id': str(self.seller_id),
        }
