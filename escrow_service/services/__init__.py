"""
Service wiring. Components receive their session, ledger and policy explicitly.
"""

from dataclasses import dataclass

from escrow_service.services.access import AccessPolicy, Actor
from escrow_service.services.directory import Catalog, UserDirectory
from escrow_service.services.dispute_service import DisputeWorkflow
from escrow_service.services.escrow_engine import (
    DEFAULT_ESCROW_PERIOD_DAYS,
    EscrowEngine,
    utcnow,
)
from escrow_service.services.expiry_sweeper import ExpirySweeper
from escrow_service.services.ledger import Ledger


@dataclass
class Services:
    directory: UserDirectory
    catalog: Catalog
    ledger: Ledger
    escrows: EscrowEngine
    disputes: DisputeWorkflow
    sweeper: ExpirySweeper


def build_services(session, policy=None, default_period_days=DEFAULT_ESCROW_PERIOD_DAYS, clock=utcnow):
    policy = policy or AccessPolicy()
    directory = UserDirectory(session)
    catalog = Catalog(session)
    ledger = Ledger(session, directory)
    escrows = EscrowEngine(
        session,
        ledger,
        catalog,
        directory,
        policy,
        default_period_days=default_period_days,
        clock=clock,
    )
    return Services(
        directory=directory,
        catalog=catalog,
        ledger=ledger,
        escrows=escrows,
        disputes=DisputeWorkflow(session, escrows, policy),
        sweeper=ExpirySweeper(session, escrows, policy),
    )


__all__ = ["AccessPolicy", "Actor", "Services", "build_services"]
