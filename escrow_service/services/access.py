"""
Actor and access policy.
Role capabilities live here so the services never compare role strings themselves.
"""

from dataclasses import dataclass
import uuid

from escrow_service.errors import Forbidden
from escrow_service.models.user import Role


@dataclass(frozen=True)
class Actor:
    """Authenticated caller: identity plus role."""
    user_id: uuid.UUID
    role: Role

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.user_id, role=user.role)


class AccessPolicy:

    def __init__(
        self,
        admin_roles=frozenset({Role.ADMIN}),
        escrow_creator_roles=frozenset({Role.BUYER, Role.ADMIN}),
    ):
        self.admin_roles = frozenset(admin_roles)
        self.escrow_creator_roles = frozenset(escrow_creator_roles)

    def is_admin(self, actor):
        return actor is not None and actor.role in self.admin_roles

    def can_create_escrow(self, actor):
        return actor.role in self.escrow_creator_roles

    def can_sweep(self, actor):
        # No actor means the scheduler is calling
        return actor is None or self.is_admin(actor)

    def can_view_escrow(self, actor, escrow):
        return self.is_admin(actor) or escrow.party_of(actor.user_id) is not None

    def can_view_dispute(self, actor, dispute):
        return (
            self.is_admin(actor)
            or actor.user_id == dispute.user_id
            or dispute.escrow.party_of(actor.user_id) is not None
        )

    def require_admin(self, actor, message="Access denied: Admin rights required"):
        if not self.is_admin(actor):
            raise Forbidden(message)
