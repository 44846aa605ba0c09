"""
Read-only adapters over the user directory and product catalog.
"""

from escrow_service.errors import NotFound
from escrow_service.models import Product, User


class UserDirectory:

    def __init__(self, session):
        self.session = session

    def get_account(self, user_id, for_update=False):
        if for_update:
            user = self.session.get(User, user_id, with_for_update=True, populate_existing=True)
        else:
            user = self.session.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user


class Catalog:

    def __init__(self, session):
        self.session = session

    def get_item(self, product_id):
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found")
        return product
