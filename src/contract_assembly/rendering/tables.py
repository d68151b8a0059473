"""HTML table rendering for table placeholders in assembled contracts."""

import os
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..models.clause import Exhibit
from ..models.enums import ServiceModel
from ..models.pricing import PaymentMilestone, PricingSummary
from ..pricing.engine import round_half_up


NO_PRICING = "No pricing data found."
NO_SCHEDULE = "No payment schedule data found."
NO_UNITS = "No units configured."
NO_EXHIBITS = "No exhibits."

TOTAL_LABELS = {
    "ONE": "Contract Total",
    "MANUFACTURING": "Manufacturing Contract Total",
    "ONSITE": "Onsite Contract Total",
}

MANUFACTURING_PHASES = ("design", "production")
MANUFACTURING_NAMES = ("deposit", "green light", "production")
ONSITE_PHASES = ("onsite", "delivery", "completion")
ONSITE_NAMES = ("delivery", "retainage", "completion")

DEFAULT_TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


def format_currency(cents: Optional[int]) -> str:
    """Format cents as whole dollars, e.g. ``$1,234``."""
    if not cents:
        return "$0"
    return f"${round_half_up(Decimal(cents) / 100):,}"


def format_percentage(value: Any) -> str:
    return f"{float(value or 0):g}%"


def format_specs(bedrooms: Optional[int], bathrooms: Optional[float], sq_ft: Optional[int]) -> str:
    """Format unit specs like ``3 Bed / 2 Bath / 1,500 sqft``."""
    parts = []
    if bedrooms is not None:
        parts.append(f"{bedrooms} Bed")
    if bathrooms is not None:
        parts.append(f"{float(bathrooms):g} Bath")
    if sq_ft is not None:
        parts.append(f"{sq_ft:,} sqft")
    return " / ".join(parts) if parts else "-"


def _normalize_type(contract_type: Any) -> str:
    value = getattr(contract_type, "value", contract_type)
    return str(value or "ONE").upper()


def _matches(item: PaymentMilestone, phases: Sequence[str], names: Sequence[str]) -> bool:
    phase = (item.phase or "").lower()
    name = (item.name or "").lower()
    return any(p in phase for p in phases) or any(n in name for n in names)


class TableRenderer:
    """
    Renders pricing, schedule, unit, signature and exhibit tables.

    Uses Jinja2 templates with HTML autoescaping; every renderer is a pure
    function of its inputs.
    """

    def __init__(self, template_dir: Optional[str] = None):
        """
        Initialize the table renderer.

        Args:
            template_dir: Directory containing the table templates.
                          Defaults to the templates shipped with the package.
        """
        self.template_dir = template_dir or DEFAULT_TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["currency"] = format_currency
        self.env.filters["percent"] = format_percentage

    def _render(self, name: str, **context) -> str:
        return self.env.get_template(name).render(**context).strip()

    def contract_total(self, summary: PricingSummary, contract_type: Any = "ONE") -> int:
        """Total a contract type is priced at: subcontracts see only their share."""
        kind = _normalize_type(contract_type)
        breakdown = summary.breakdown
        if kind == "MANUFACTURING":
            return breakdown.design_fee + breakdown.offsite
        if kind == "ONSITE":
            return breakdown.onsite
        return summary.contract_value

    def pricing_rows(self, summary: PricingSummary, contract_type: Any = "ONE") -> List[Dict[str, Any]]:
        """
        Line items of the pricing table for a contract type.

        ONE and MANUFACTURING show design fee, offsite and customizations;
        onsite services appear on ONE only for CMOS projects and always on
        ONSITE. The breakdown's offsite figure already includes
        customizations, so when they get their own row the offsite row
        shows the base manufacturing price. The amounts always add up to
        contract_total().
        """
        kind = _normalize_type(contract_type)
        breakdown = summary.breakdown
        rows: List[Dict[str, Any]] = []
        if kind in ("ONE", "MANUFACTURING"):
            rows.append({"label": "Design Fee", "amount": breakdown.design_fee})
            if breakdown.customizations > 0:
                rows.append({
                    "label": "Offsite (Manufacturing)",
                    "amount": breakdown.offsite - breakdown.customizations,
                })
                rows.append({"label": "Customizations", "amount": breakdown.customizations})
            else:
                rows.append({"label": "Offsite (Manufacturing)", "amount": breakdown.offsite})
        is_cmos = summary.service_model == ServiceModel.CMOS
        if (kind == "ONE" and is_cmos and breakdown.onsite > 0) or kind == "ONSITE":
            rows.append({"label": "Onsite Services", "amount": breakdown.onsite})
        return rows

    def render_pricing_table(self, summary: Optional[PricingSummary], contract_type: Any = "ONE") -> str:
        """Render the pricing breakdown for a contract type."""
        if summary is None:
            return NO_PRICING

        kind = _normalize_type(contract_type)
        return self._render(
            "pricing_table.html",
            rows=self.pricing_rows(summary, kind),
            total_label=TOTAL_LABELS.get(kind, TOTAL_LABELS["ONE"]),
            total=self.contract_total(summary, kind),
        )

    def render_payment_schedule(self, summary: Optional[PricingSummary], contract_type: Any = "ONE") -> str:
        """
        Render the payment schedule with a Total row.

        MANUFACTURING keeps design and production milestones, ONSITE keeps
        onsite, delivery and completion milestones. Filtered milestones are
        rescaled so they add up to the contract type's own total.
        """
        if summary is None or not summary.payment_schedule:
            return NO_SCHEDULE

        kind = _normalize_type(contract_type)
        milestones = list(summary.payment_schedule)
        if kind == "MANUFACTURING":
            milestones = [m for m in milestones if _matches(m, MANUFACTURING_PHASES, MANUFACTURING_NAMES)]
        elif kind == "ONSITE":
            milestones = [m for m in milestones if _matches(m, ONSITE_PHASES, ONSITE_NAMES)]
        if not milestones:
            return NO_SCHEDULE

        if kind in ("MANUFACTURING", "ONSITE"):
            milestones = self._rescale(milestones, self.contract_total(summary, kind))

        return self._render(
            "payment_schedule.html",
            milestones=milestones,
            total_percentage=sum(m.percentage for m in milestones),
            total=sum(m.amount for m in milestones),
        )

    @staticmethod
    def _rescale(milestones: Sequence[PaymentMilestone], total: int) -> List[PaymentMilestone]:
        share = sum(Decimal(str(m.percentage)) for m in milestones)
        if total <= 0 or share <= 0:
            return list(milestones)
        rescaled = [
            PaymentMilestone(
                name=m.name,
                percentage=m.percentage,
                amount=round_half_up(Decimal(total) * Decimal(str(m.percentage)) / share),
                phase=m.phase,
            )
            for m in milestones
        ]
        rescaled[-1].amount += total - sum(m.amount for m in rescaled)
        return rescaled

    def render_unit_details(self, summary: Optional[PricingSummary]) -> str:
        """Render one row per unit plus a ``Total (N Units)`` row."""
        if summary is None or not summary.units:
            return NO_UNITS

        units = [
            {
                "label": unit.unit_label or f"Unit {index}",
                "model": unit.model_name or "-",
                "specs": format_specs(unit.bedrooms, unit.bathrooms, unit.sq_ft),
                "price": unit.estimated_price,
            }
            for index, unit in enumerate(summary.units, start=1)
        ]
        return self._render(
            "unit_details.html",
            units=units,
            total=sum(u["price"] for u in units),
        )

    def render_signature_block(self, values: Optional[Mapping[str, Any]] = None) -> str:
        """Render company and client signature panels from project values."""
        values = values or {}
        parties = [
            {
                "title": "COMPANY",
                "entity": values.get("COMPANY_NAME") or "",
                "signer": values.get("COMPANY_SIGNER_NAME") or "",
                "signer_title": values.get("COMPANY_SIGNER_TITLE") or "",
            },
            {
                "title": "CLIENT",
                "entity": values.get("CLIENT_NAME") or "",
                "signer": values.get("CLIENT_SIGNER_NAME") or "",
                "signer_title": values.get("CLIENT_TITLE") or "",
            },
        ]
        return self._render("signature_block.html", parties=parties)

    def render_exhibit_list(self, exhibits: Optional[Sequence[Exhibit]]) -> str:
        """Render the list of exhibits in letter order."""
        if not exhibits:
            return NO_EXHIBITS
        ordered = sorted(exhibits, key=lambda e: e.letter)
        return self._render("exhibit_list.html", exhibits=ordered)


_default_renderer: Optional[TableRenderer] = None


def default_renderer() -> TableRenderer:
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = TableRenderer()
    return _default_renderer


def render_pricing_table(summary: Optional[PricingSummary], contract_type: Any = "ONE") -> str:
    return default_renderer().render_pricing_table(summary, contract_type)


def render_payment_schedule(summary: Optional[PricingSummary], contract_type: Any = "ONE") -> str:
    return default_renderer().render_payment_schedule(summary, contract_type)


def render_unit_details(summary: Optional[PricingSummary]) -> str:
    return default_renderer().render_unit_details(summary)


def render_signature_block(values: Optional[Mapping[str, Any]] = None) -> str:
    return default_renderer().render_signature_block(values)


def render_exhibit_list(exhibits: Optional[Sequence[Exhibit]]) -> str:
    return default_renderer().render_exhibit_list(exhibits)
