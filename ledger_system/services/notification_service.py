# ledger_system/services/notification_service.py
"""
Ledger notifier - turns ledger events into queued Notification rows.
Delivery is handled by an external worker reading the notifications table.
"""
from typing import Dict, Callable
import logging

from models import Notification
from ledger_system.events.event_bus import EventBus, LedgerEvents

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "", "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember"
]

# targetValue для уведомлений админам
ADMIN_REVIEW_QUEUE = "finance"


def formatMoney(value) -> str:
    """15000 -> 'Rp 15.000'"""
    return "Rp " + f"{int(value or 0):,}".replace(",", ".")


class LedgerNotifier:
    """
    Subscribes to ledger events. Each handler writes in its own session,
    so a failed insert never touches the ledger transaction that emitted
    the event.
    """

    def __init__(self, sessionFactory: Callable):
        self.sessionFactory = sessionFactory

    def handlers(self) -> Dict[str, Callable]:
        return {
            LedgerEvents.QUOTA_LOW: self.onQuotaLow,
            LedgerEvents.QUOTA_EMPTY: self.onQuotaEmpty,
            LedgerEvents.SUBSCRIPTION_APPROVED: self.onSubscriptionApproved,
            LedgerEvents.SUBSCRIPTION_REJECTED: self.onSubscriptionRejected,
            LedgerEvents.COMMISSION_ACCRUED: self.onCommissionAccrued,
            LedgerEvents.WITHDRAWAL_REQUESTED: self.onWithdrawalRequested,
            LedgerEvents.WITHDRAWAL_APPROVED: self.onWithdrawalApproved,
            LedgerEvents.WITHDRAWAL_REJECTED: self.onWithdrawalRejected,
            LedgerEvents.KAS_GENERATED: self.onKasGenerated,
            LedgerEvents.KAS_BILLED: self.onKasBilled,
            LedgerEvents.KAS_REMINDER: self.onKasReminder,
        }

    def register(self, bus: EventBus):
        for eventName, handler in self.handlers().items():
            bus.subscribe(eventName, handler)
        logger.info(f"LedgerNotifier registered for {len(self.handlers())} events")

    def unregister(self, bus: EventBus):
        for eventName, handler in self.handlers().items():
            bus.unsubscribe(eventName, handler)

    def _enqueue(self, targetType: str, targetValue, title: str, text: str,
                 category: str, importance: str = "normal", link: str = None):
        session = self.sessionFactory()
        try:
            notification = Notification(
                source="ledger",
                title=title,
                text=text,
                link=link,
                targetType=targetType,
                targetValue=str(targetValue),
                category=category,
                importance=importance
            )
            session.add(notification)
            session.commit()
            logger.info(f"Notification queued for {targetType} {targetValue}: {title}")

        except Exception as e:
            logger.error(f"Error queueing notification for {targetType} {targetValue}: {e}")
            session.rollback()
        finally:
            session.close()

    # Quota

    def onQuotaLow(self, data: Dict):
        self._enqueue(
            "merchant", data["merchantId"],
            title="Kuota hampir habis",
            text=f"Sisa kuota transaksi Anda {data['remainingQuota']} dari {data['totalQuota']}.",
            category="quota",
            importance="high"
        )

    def onQuotaEmpty(self, data: Dict):
        self._enqueue(
            "merchant", data["merchantId"],
            title="Kuota habis",
            text="Kuota transaksi Anda habis. Toko tidak tampil di katalog sampai paket diperpanjang.",
            category="quota",
            importance="critical"
        )

    def onSubscriptionApproved(self, data: Dict):
        name = data.get("packageName") or "Premium"
        self._enqueue(
            "merchant", data["merchantId"],
            title="Paket aktif",
            text=f"Paket {name} aktif: {data['quotaSize']} transaksi.",
            category="quota"
        )

    def onSubscriptionRejected(self, data: Dict):
        notes = data.get("notes")
        self._enqueue(
            "merchant", data["merchantId"],
            title="Pembelian paket ditolak",
            text="Pembelian paket Anda ditolak." + (f" Catatan: {notes}" if notes else ""),
            category="quota",
            importance="high"
        )

    # Commissions and withdrawals

    def onCommissionAccrued(self, data: Dict):
        self._enqueue(
            "verifikator", data["verifikatorId"],
            title="Komisi baru",
            text=f"Komisi {formatMoney(data['amount'])} dari merchant #{data['merchantId']}.",
            category="commission"
        )

    def onWithdrawalRequested(self, data: Dict):
        # Очередь проверки для финансового админа
        self._enqueue(
            "admin", ADMIN_REVIEW_QUEUE,
            title="Permintaan penarikan baru",
            text=(
                f"Verifikator #{data['verifikatorId']} meminta penarikan {formatMoney(data['amount'])}"
                f" ke {data.get('bankName')} (#{data['withdrawalId']})."
            ),
            category="withdrawal_review",
            importance="high"
        )

    def onWithdrawalApproved(self, data: Dict):
        self._enqueue(
            "verifikator", data["verifikatorId"],
            title="Penarikan disetujui",
            text=f"Penarikan {formatMoney(data['amount'])} ke {data.get('bankName')} disetujui.",
            category="withdrawal",
            importance="high"
        )

    def onWithdrawalRejected(self, data: Dict):
        notes = data.get("notes")
        self._enqueue(
            "verifikator", data["verifikatorId"],
            title="Penarikan ditolak",
            text=f"Penarikan {formatMoney(data['amount'])} ditolak." + (f" Catatan: {notes}" if notes else ""),
            category="withdrawal",
            importance="high"
        )

    # Kas

    def onKasGenerated(self, data: Dict):
        if not data.get("created"):
            return
        self._enqueue(
            "verifikator", data["verifikatorId"],
            title="Tagihan kas dibuat",
            text=(
                f"{data['created']} tagihan kas {data.get('groupName')} bulan "
                f"{MONTH_NAMES[data['month']]} {data['year']} telah dibuat."
            ),
            category="kas_summary"
        )

    def onKasBilled(self, data: Dict):
        self._enqueue(
            "merchant", data["merchantId"],
            title="Tagihan kas",
            text=(
                f"Tagihan kas {data.get('groupName')} bulan {MONTH_NAMES[data['month']]} {data['year']}: "
                f"{formatMoney(data['amount'])}."
            ),
            category="kas"
        )

    def onKasReminder(self, data: Dict):
        self._enqueue(
            "merchant", data["merchantId"],
            title="Pengingat kas",
            text=(
                f"Kas {data.get('groupName')} bulan {MONTH_NAMES[data['month']]} {data['year']} "
                f"sebesar {formatMoney(data['amount'])} belum dibayar."
            ),
            category="kas",
            importance="high"
        )
