"""In-process operational counters behind GET /charges/statistics"""

import threading
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable

from charge_mgmt.domain.charges import round_money


@dataclass(frozen=True)
class ChargeStatisticsSnapshot:
    system_status: str
    total_calculations_today: int
    total_charges_calculated: Decimal
    average_charge_per_transaction: Decimal


class ChargeStatistics:
    """Daily calculation counters; resets when the calendar day changes"""

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today
        self._lock = threading.Lock()
        self._day = today()
        self._count = 0
        self._total = Decimal("0")

    def record(self, calculations: int, total_charges: Decimal) -> None:
        with self._lock:
            self._roll_over()
            self._count += calculations
            self._total += total_charges

    def snapshot(self) -> ChargeStatisticsSnapshot:
        with self._lock:
            self._roll_over()
            average = self._total / self._count if self._count else Decimal("0")
            return ChargeStatisticsSnapshot(
                system_status="OPERATIONAL",
                total_calculations_today=self._count,
                total_charges_calculated=round_money(self._total),
                average_charge_per_transaction=round_money(average),
            )

    def _roll_over(self) -> None:
        today = self._today()
        if today != self._day:
            self._day = today
            self._count = 0
            self._total = Decimal("0")
