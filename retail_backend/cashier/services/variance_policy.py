# cashier/services/variance_policy.py

"""
VARIANCE POLICY

Tolerance is configuration (settings.LEDGER), never a literal in code:
- CASH_VARIANCE_TOLERANCE             default, minor units
- CASH_VARIANCE_TOLERANCE_BY_CHANNEL  {channel: minor units} overrides
- VARIANCE_NOTIFICATION_THRESHOLD     variances at/above this are logged at WARNING

has_variance is strict: a variance exactly equal to the tolerance is accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.conf import settings

from accounting.money import format_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariancePolicy:
    default_tolerance: int = 0
    tolerance_by_channel: dict = field(default_factory=dict)
    notification_threshold: int = 100

    @classmethod
    def from_settings(cls) -> "VariancePolicy":
        conf = getattr(settings, "LEDGER", {}) or {}
        return cls(
            default_tolerance=int(conf.get("CASH_VARIANCE_TOLERANCE", 0) or 0),
            tolerance_by_channel={
                str(k): int(v) for k, v in (conf.get("CASH_VARIANCE_TOLERANCE_BY_CHANNEL") or {}).items()
            },
            notification_threshold=int(conf.get("VARIANCE_NOTIFICATION_THRESHOLD", 100) or 0),
        )

    def tolerance_for(self, channel: str | None = None) -> int:
        if channel is not None and str(channel) in self.tolerance_by_channel:
            return max(self.tolerance_by_channel[str(channel)], 0)
        return max(self.default_tolerance, 0)

    def has_variance(self, variance: int, *, tolerance: int) -> bool:
        return abs(variance) > tolerance

    def notify_if_needed(self, variance: int, **context) -> bool:
        """Log a WARNING for managers when the variance reaches the threshold."""
        if variance == 0 or abs(variance) < self.notification_threshold:
            return False
        logger.warning(
            "Cash variance %s above notification threshold",
            format_money(variance),
            extra={"variance": variance, "threshold": self.notification_threshold, **context},
        )
        return True
