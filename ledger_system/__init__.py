# ledger_system/__init__.py
"""
Ledger System - transaction quota metering, verifikator commissions and kas dues.
"""

# Services
from ledger_system.services.tier_resolver import TierResolver
from ledger_system.services.quota_ledger import QuotaPoolLedger, QuotaInfo, DebitResult
from ledger_system.services.metering_service import MeteringService
from ledger_system.services.availability import AvailabilityEvaluator
from ledger_system.services.subscription_service import SubscriptionService, ApprovalResult
from ledger_system.services.commission_ledger import CommissionLedger, TransitionResult
from ledger_system.services.withdrawal_processor import WithdrawalProcessor
from ledger_system.services.dues_billing import DuesBillingEngine
from ledger_system.services.notification_service import LedgerNotifier

# Errors
from ledger_system.errors import (
    LedgerError, InsufficientQuota, NoMatchingTier, InsufficientBalance,
    BelowMinimum, InvalidStateTransition, DuplicateBilling, RecordNotFound
)

# Utilities
from ledger_system.utils.time_machine import timeMachine

# Events
from ledger_system.events.event_bus import eventBus, LedgerEvents

__all__ = [
    # Services
    'TierResolver',
    'QuotaPoolLedger',
    'QuotaInfo',
    'DebitResult',
    'MeteringService',
    'AvailabilityEvaluator',
    'SubscriptionService',
    'ApprovalResult',
    'CommissionLedger',
    'TransitionResult',
    'WithdrawalProcessor',
    'DuesBillingEngine',
    'LedgerNotifier',

    # Errors
    'LedgerError',
    'InsufficientQuota',
    'NoMatchingTier',
    'InsufficientBalance',
    'BelowMinimum',
    'InvalidStateTransition',
    'DuplicateBilling',
    'RecordNotFound',

    # Utils
    'timeMachine',

    # Events
    'eventBus',
    'LedgerEvents',
]
