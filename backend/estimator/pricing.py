from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class PricingStrategy(Protocol):
    def quote(self, minutes: float) -> str: ...


@dataclass(slots=True, frozen=True)
class PerMinutePricing:
    """Flat per-minute fare with no base fee, distance component or surge."""

    rate_per_minute: float = 0.5

    def quote(self, minutes: float) -> str:
        if minutes < 0:
            raise ValueError("Trip duration must be non-negative")
        return f"{minutes * self.rate_per_minute:.2f}"


__all__ = ["PerMinutePricing", "PricingStrategy"]
