"""Pricing engine: unit roll-up, contract value and payment schedule."""

import logging
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from ..exceptions import ProjectNotFound
from ..interfaces.repository import IProjectRepository
from ..models.enums import ServiceModel
from ..models.pricing import (
    MilestoneRecord,
    PaymentMilestone,
    PricingBreakdown,
    PricingSummary,
    UnitRecord,
)


logger = logging.getLogger(__name__)


DEFAULT_MILESTONES: List[MilestoneRecord] = [
    MilestoneRecord(name="Signing Deposit", percentage=20, phase="Design", milestone_number=1),
    MilestoneRecord(name="Green Light", percentage=20, phase="Production", milestone_number=2),
    MilestoneRecord(name="Production Start", percentage=20, phase="Production", milestone_number=3),
    MilestoneRecord(name="Production Midpoint", percentage=20, phase="Production", milestone_number=4),
    MilestoneRecord(name="Delivery", percentage=15, phase="Delivery", milestone_number=5),
    MilestoneRecord(name="Retainage", percentage=5, phase="Completion", milestone_number=6),
]

DEFAULT_REMAINDER_MILESTONE = "Retainage"


def round_half_up(value: Decimal) -> int:
    """Round a Decimal amount of cents to a whole cent, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def summarize_models(units: Sequence[UnitRecord]) -> str:
    """Build a summary like ``"2x Carmel, 1x Trinity"`` in first-seen order."""
    counts = Counter(unit.model_name or "Unknown Model" for unit in units)
    return ", ".join(f"{count}x {name}" for name, count in counts.items())


class PricingEngine:
    """
    Derives a project's pricing summary from its units and milestones.

    The rounding remainder of the payment schedule is assigned to a named
    milestone (``remainder_milestone``, matched case-insensitively) so that
    the schedule always sums to the contract value. When no milestone
    carries that name, the last milestone absorbs it.
    """

    def __init__(
        self,
        repository: IProjectRepository,
        default_milestones: Optional[Sequence[MilestoneRecord]] = None,
        remainder_milestone: str = DEFAULT_REMAINDER_MILESTONE,
    ):
        self._repository = repository
        self._default_milestones = list(default_milestones or DEFAULT_MILESTONES)
        self._remainder_milestone = remainder_milestone

    def calculate(self, project_id: int) -> PricingSummary:
        """
        Compute the pricing summary for a project.

        Args:
            project_id: Project to price.

        Returns:
            A fresh PricingSummary. Nothing is cached or persisted.

        Raises:
            ProjectNotFound: If the project does not exist.
        """
        project = self._repository.get_project(project_id)
        if project is None:
            raise ProjectNotFound(message=f"Project {project_id} not found", project_id=project_id)

        units = self._repository.get_units(project_id)
        service_model = ServiceModel.from_value(project.service_model)

        if not units:
            logger.info(f"Project {project_id} has no units; pricing is zero")
            milestones = self._repository.get_milestones(project_id) or self._default_milestones
            return PricingSummary(
                project_id=project_id,
                service_model=service_model,
                payment_schedule=self.build_schedule(0, milestones),
            )

        breakdown = self.rollup(units, project.site_costs)
        project_budget = breakdown.grand_total
        if service_model == ServiceModel.CMOS:
            contract_value = project_budget
        else:
            contract_value = project_budget - breakdown.onsite

        milestones = self._repository.get_milestones(project_id) or self._default_milestones
        schedule = self.build_schedule(contract_value, milestones)

        logger.info(
            f"Project {project_id} ({service_model.value}): budget={project_budget}, "
            f"contract_value={contract_value}, units={len(units)}"
        )
        return PricingSummary(
            project_id=project_id,
            service_model=service_model,
            breakdown=breakdown,
            project_budget=project_budget,
            contract_value=contract_value,
            payment_schedule=schedule,
            unit_count=len(units),
            unit_model_summary=summarize_models(units),
            units=list(units),
        )

    @staticmethod
    def rollup(units: Sequence[UnitRecord], site_costs: int = 0) -> PricingBreakdown:
        """Sum per-category totals across units; site costs count once, as onsite."""
        breakdown = PricingBreakdown()
        for unit in units:
            breakdown.design_fee += unit.design_fee
            breakdown.offsite += unit.offsite_total
            breakdown.onsite += unit.onsite_est_price
            breakdown.customizations += unit.customization_total
        breakdown.onsite += site_costs or 0
        return breakdown

    def build_schedule(
        self, contract_value: int, milestones: Sequence[MilestoneRecord]
    ) -> List[PaymentMilestone]:
        """
        Split a contract value across milestones.

        Each amount is ``contract_value * percentage / 100`` rounded half-up
        to a whole cent; the difference to ``contract_value`` is then added to
        the remainder milestone.
        """
        schedule = [
            PaymentMilestone(
                name=m.name,
                percentage=m.percentage,
                amount=round_half_up(Decimal(contract_value) * Decimal(str(m.percentage)) / 100),
                phase=m.phase,
            )
            for m in milestones
        ]
        if not schedule:
            return schedule

        discrepancy = contract_value - sum(item.amount for item in schedule)
        if discrepancy:
            target = self._remainder_index(schedule)
            schedule[target].amount += discrepancy
            logger.debug(f"Assigned rounding remainder {discrepancy} to {schedule[target].name}")
        return schedule

    def _remainder_index(self, schedule: Sequence[PaymentMilestone]) -> int:
        wanted = (self._remainder_milestone or "").strip().lower()
        for index, item in enumerate(schedule):
            if item.name.strip().lower() == wanted:
                return index
        return len(schedule) - 1
