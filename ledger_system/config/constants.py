# ledger_system/config/constants.py
"""
Ledger statuses and constants.
"""
from enum import Enum
from decimal import Decimal


class PoolStatus(Enum):
    PENDING = "PENDING"  # покупка ждет одобрения админа
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    REJECTED = "REJECTED"


class CommissionStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    REJECTED = "REJECTED"


class WithdrawalStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class KasStatus(Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class MemberStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class QuotaSource(Enum):
    PREMIUM = "premium"
    FREE = "free"


# Withdrawal amounts that still count against the available balance
COMMITTED_WITHDRAWAL_STATUSES = (WithdrawalStatus.PENDING.value, WithdrawalStatus.APPROVED.value)

# Commission amounts that count as earned
EARNED_COMMISSION_STATUSES = (CommissionStatus.PENDING.value, CommissionStatus.PAID.value)

FREE_TIER_PACKAGE_NAME = "Free Tier"
DEFAULT_PACKAGE_NAME = "Premium"

USAGE_LOG_DEFAULT_LIMIT = 20

# Money is kept in whole rupiah
MONEY_QUANTUM = Decimal("1")
