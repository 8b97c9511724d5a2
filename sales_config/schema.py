"""
Engine settings schema.

Defines the tunable constants of the proposal engines with the values the
business has always used as defaults.  Actual values come from
``defaults.yaml`` (or an override file) through ``get_active_settings()``.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Self

from sales_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class EngineSettings:
    """
    Configuration for the proposal engines.

    The commission tolerance (0.05) and the monetary tolerance (0.01) are
    kept as separate settings: commission closure compounds rounding
    across percent and value fields.
    """

    # Present value
    monthly_discount_rate: Decimal = Decimal("0.005")
    days_per_month: int = 30
    present_value_epsilon: Decimal = Decimal("0.001")

    # Closure tolerances
    money_tolerance: Decimal = Decimal("0.01")
    commission_tolerance: Decimal = Decimal("0.05")
    participation_tolerance: Decimal = Decimal("0.01")
    template_tolerance: Decimal = Decimal("0.01")

    # Proposal
    proposal_validity_days: int = 2

    def __post_init__(self):
        if self.monthly_discount_rate < 0:
            raise ValueError("monthly_discount_rate cannot be negative")
        if self.monthly_discount_rate >= 1:
            raise ValueError("monthly_discount_rate must be a fraction below 1")
        if self.days_per_month <= 0:
            raise ValueError("days_per_month must be positive")
        if self.present_value_epsilon < 0:
            raise ValueError("present_value_epsilon cannot be negative")

        for name in (
            "money_tolerance",
            "commission_tolerance",
            "participation_tolerance",
            "template_tolerance",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        if self.proposal_validity_days < 0:
            raise ValueError("proposal_validity_days cannot be negative")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create settings from a flat dict; unknown keys are rejected."""
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown engine settings: {', '.join(unknown)}")
        logger.debug(
            "engine_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
