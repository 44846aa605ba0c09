from escrow_service.models.user import User, Role
from escrow_service.models.product import Product
from escrow_service.models.escrow import Escrow, EscrowProduct, EscrowStatus
from escrow_service.models.dispute import Dispute, DisputeComment, DisputeStatus, DisputeRaiser
from escrow_service.models.wallet_transaction import WalletTransaction, TransactionKind

__all__ = [
    "User", "Role", "Product",
    "Escrow", "EscrowProduct", "EscrowStatus",
    "Dispute", "DisputeComment", "DisputeStatus", "DisputeRaiser",
    "WalletTransaction", "TransactionKind",
]
