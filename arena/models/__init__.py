from arena.models.base import Base, engine, AsyncSessionFactory, use_immediate_transactions
from arena.models.models import (
    User,
    Wallet,
    WalletTransaction,
    Tournament,
    Registration,
    PendingDeposit,
    MatchType,
    TournamentStatus,
    KycStatus,
    PaymentStatus,
    DepositStatus,
    TransactionType,
    compute_status,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "use_immediate_transactions",
    "User",
    "Wallet",
    "WalletTransaction",
    "Tournament",
    "Registration",
    "PendingDeposit",
    "MatchType",
    "TournamentStatus",
    "KycStatus",
    "PaymentStatus",
    "DepositStatus",
    "TransactionType",
    "compute_status",
]
