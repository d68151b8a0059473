"""Pricing data models for the contract assembly system.

All monetary amounts are integer cents.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .enums import ServiceModel


@dataclass
class ProjectRecord:
    """Project row as needed by pricing and assembly."""
    id: int
    name: str
    service_model: ServiceModel = ServiceModel.CRC
    project_number: Optional[str] = None
    jurisdiction: Optional[str] = None
    site_costs: int = 0


@dataclass
class UnitRecord:
    """Project unit joined to its home model."""
    unit_label: str
    model_name: str
    design_fee: int = 0
    offsite_base_price: int = 0
    onsite_est_price: int = 0
    customization_total: int = 0
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    sq_ft: Optional[int] = None
    id: Optional[int] = None

    @property
    def offsite_total(self) -> int:
        return self.offsite_base_price + self.customization_total

    @property
    def estimated_price(self) -> int:
        return self.design_fee + self.offsite_total + self.onsite_est_price


@dataclass
class MilestoneRecord:
    """Explicit payment milestone configured on a project."""
    name: str
    percentage: float
    phase: str = ""
    milestone_number: int = 0


@dataclass
class PaymentMilestone:
    """Computed payment schedule entry."""
    name: str
    percentage: float
    amount: int
    phase: str = ""


@dataclass
class PricingBreakdown:
    """Per-category totals across all units of a project; offsite includes customizations."""
    design_fee: int = 0
    offsite: int = 0
    onsite: int = 0
    customizations: int = 0

    @property
    def grand_total(self) -> int:
        return self.design_fee + self.offsite + self.onsite


@dataclass
class PricingSummary:
    """
    Derived pricing for a project.

    ``contract_value`` depends on the service model: for CRC the client
    retains its own on-site contractor, so onsite costs are excluded.
    """
    project_id: int
    service_model: ServiceModel
    breakdown: PricingBreakdown = field(default_factory=PricingBreakdown)
    project_budget: int = 0
    contract_value: int = 0
    payment_schedule: List[PaymentMilestone] = field(default_factory=list)
    unit_count: int = 0
    unit_model_summary: str = ""
    units: List[UnitRecord] = field(default_factory=list)

    def __post_init__(self):
        if self.payment_schedule is None:
            self.payment_schedule = []
        if self.units is None:
            self.units = []

    @property
    def grand_total(self) -> int:
        return self.breakdown.grand_total

    @property
    def schedule_total(self) -> int:
        return sum(item.amount for item in self.payment_schedule)

    def to_dict(self) -> dict:
        """Convert summary to a JSON-friendly dictionary."""
        return {
            "project_id": self.project_id,
            "service_model": self.service_model.value,
            "breakdown": {
                "design_fee": self.breakdown.design_fee,
                "offsite": self.breakdown.offsite,
                "onsite": self.breakdown.onsite,
                "customizations": self.breakdown.customizations,
            },
            "grand_total": self.grand_total,
            "project_budget": self.project_budget,
            "contract_value": self.contract_value,
            "payment_schedule": [
                {
                    "name": item.name,
                    "percentage": item.percentage,
                    "amount": item.amount,
                    "phase": item.phase,
                }
                for item in self.payment_schedule
            ],
            "unit_count": self.unit_count,
            "unit_model_summary": self.unit_model_summary,
        }
