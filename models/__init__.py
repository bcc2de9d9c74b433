# models/__init__.py
"""
Database models for the marketplace ledger.
Import all models here so Base.metadata sees every table.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Marketplace
from models.verifikator import Verifikator
from models.merchant import Merchant
from models.order import Order

# Quota
from models.transaction_package import TransactionPackage
from models.quota_pool import QuotaPool
from models.quota_tier import QuotaTier
from models.quota_usage_log import QuotaUsageLog

# Commissions and payouts
from models.commission_entry import CommissionEntry
from models.withdrawal import Withdrawal

# Dues
from models.trade_group import TradeGroup, GroupMember
from models.kas_payment import KasPayment

from models.notification import Notification

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Marketplace
    'Verifikator',
    'Merchant',
    'Order',

    # Quota
    'TransactionPackage',
    'QuotaPool',
    'QuotaTier',
    'QuotaUsageLog',

    # Commissions
    'CommissionEntry',
    'Withdrawal',

    # Dues
    'TradeGroup',
    'GroupMember',
    'KasPayment',

    'Notification',
]
