# ledger_system/services/tier_resolver.py
"""
Price-tier resolution: how many quota credits one transaction costs.
"""
from decimal import Decimal, InvalidOperation
from typing import List, Dict, Optional
from sqlalchemy.orm import Session
import logging

from models import QuotaTier
from ledger_system.errors import NoMatchingTier, RecordNotFound

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("minPrice", "maxPrice", "creditCost", "sortOrder")


def toMoney(value) -> Decimal:
    """Coerce int/str/float/Decimal into Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")


class TierResolver:
    """Service for resolving and managing quota tiers."""

    def __init__(self, session: Session):
        self.session = session

    def listTiers(self) -> List[QuotaTier]:
        return self.session.query(QuotaTier).order_by(
            QuotaTier.sortOrder, QuotaTier.minPrice
        ).all()

    def resolveTier(self, price) -> QuotaTier:
        """
        First tier (by sortOrder) whose [minPrice, maxPrice) contains the price.
        Raises NoMatchingTier on a configuration gap.
        """
        price = toMoney(price)

        for tier in self.listTiers():
            if tier.contains(price):
                return tier

        logger.warning(f"No quota tier matches price {price}")
        raise NoMatchingTier(f"No quota tier configured for price {price}", price=str(price))

    def resolve(self, price) -> int:
        """Credit cost for a transaction at this price."""
        return self.resolveTier(price).creditCost

    def createTier(self, minPrice, maxPrice=None, creditCost: int = 1, sortOrder: int = 0) -> QuotaTier:
        tier = QuotaTier(
            minPrice=toMoney(minPrice),
            maxPrice=toMoney(maxPrice) if maxPrice is not None else None,
            creditCost=creditCost,
            sortOrder=sortOrder
        )
        self._validate(tier)

        self.session.add(tier)
        self.session.commit()

        logger.info(f"Quota tier created: {tier}")
        return tier

    def updateTier(self, tierId: int, **fields) -> QuotaTier:
        """
        Edit a tier. Orders already debited keep their recorded creditsUsed.
        """
        unknown = set(fields) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown tier fields: {sorted(unknown)}")

        tier = self._getTier(tierId)

        for key, value in fields.items():
            if key in ("minPrice", "maxPrice") and value is not None:
                value = toMoney(value)
            setattr(tier, key, value)

        try:
            self._validate(tier)
        except ValueError:
            self.session.rollback()
            raise

        self.session.commit()
        logger.info(f"Quota tier updated: {tier}")
        return tier

    def deleteTier(self, tierId: int) -> bool:
        tier = self._getTier(tierId)
        self.session.delete(tier)
        self.session.commit()

        logger.info(f"Quota tier {tierId} deleted")
        return True

    def findGaps(self) -> List[Dict]:
        """
        Check that tiers partition the price axis.
        Returns a list of problems: gaps between tiers, overlaps and a
        missing unbounded top tier.
        """
        problems = []
        tiers = sorted(self.listTiers(), key=lambda t: t.minPrice)
        cursor: Optional[Decimal] = Decimal("0")

        for tier in tiers:
            if cursor is None:
                problems.append({"type": "overlap", "tierId": tier.tierID, "from": str(tier.minPrice), "to": None})
                continue
            if tier.minPrice > cursor:
                problems.append({"type": "gap", "from": str(cursor), "to": str(tier.minPrice)})
            elif tier.minPrice < cursor:
                problems.append({"type": "overlap", "tierId": tier.tierID,
                                 "from": str(tier.minPrice), "to": str(cursor)})

            if tier.maxPrice is None:
                cursor = None
            else:
                cursor = max(cursor, tier.maxPrice)

        if cursor is not None:
            problems.append({"type": "gap", "from": str(cursor), "to": None})

        for problem in problems:
            logger.warning(f"Quota tier configuration problem: {problem}")

        return problems

    def _getTier(self, tierId: int) -> QuotaTier:
        tier = self.session.query(QuotaTier).filter_by(tierID=tierId).first()
        if not tier:
            raise RecordNotFound(f"Quota tier {tierId} not found", tierId=tierId)
        return tier

    @staticmethod
    def _validate(tier: QuotaTier):
        if tier.creditCost is None or tier.creditCost < 1:
            raise ValueError("creditCost must be at least 1")
        if tier.minPrice < 0:
            raise ValueError("minPrice must not be negative")
        if tier.maxPrice is not None and tier.maxPrice <= tier.minPrice:
            raise ValueError("maxPrice must be greater than minPrice")
