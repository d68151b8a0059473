"""Conditional assembly of contracts from the stored clause library."""

import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from markupsafe import escape

from ..exceptions import ContractAssemblyError, TemplateNotFound
from ..interfaces.store import IClauseStore
from ..models.assembly import AssembledContract, ContractPackage, UnresolvedPlaceholder
from ..models.clause import VARIABLE_PATTERN, Clause, ContractTemplate, Exhibit
from ..models.enums import BlockType, ServiceModel, TablePlaceholder
from ..models.pricing import PricingSummary
from ..pricing.engine import PricingEngine
from ..rendering.tables import TableRenderer, format_currency


logger = logging.getLogger(__name__)


HEADING_TAGS = {1: "h1", 2: "h2", 3: "h3", 4: "h4"}
BLOCK_SPLIT = re.compile(r"\n\s*\n")

SERVICE_MODEL_KEY = "serviceModel"
JURISDICTION_KEY = "jurisdiction"
UNIT_COUNT_KEY = "unitCount"

ON_SITE_SELECTION = {
    ServiceModel.CRC: "CLIENT-RETAINED CONTRACTOR",
    ServiceModel.CMOS: "COMPANY-MANAGED ON-SITE SERVICES",
}


def format_value(value: Any) -> str:
    """Format a project value for substitution into contract text."""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, (float, Decimal)):
        return f"{value:,.2f}"
    if isinstance(value, ServiceModel):
        return value.value
    return str(value)


def rule_keys(value: Any) -> List[str]:
    """Turn a project value into the string keys used by conditional rules."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        keys: List[str] = []
        for item in value:
            keys.extend(rule_keys(item))
        return keys
    if isinstance(value, bool):
        return ["true" if value else "false"]
    if isinstance(value, ServiceModel):
        return [value.value]
    return [str(value)]


def contract_filename(contract_type: str, values: Mapping[str, Any], when: Optional[datetime] = None) -> str:
    """Build ``{PROJECT_NUMBER}_{TYPE}_{YYYYMMDD}.html``."""
    when = when or datetime.now(timezone.utc)
    project_number = str(values.get("PROJECT_NUMBER") or "DRAFT")
    project_number = re.sub(r"[^A-Za-z0-9-]+", "_", project_number)
    return f"{project_number}_{contract_type}_{when.strftime('%Y%m%d')}.html"


def pricing_variables(pricing: PricingSummary) -> Dict[str, Any]:
    """Placeholder values derived from a pricing summary."""
    variables: Dict[str, Any] = {
        "CONTRACT_VALUE": format_currency(pricing.contract_value),
        "PROJECT_BUDGET": format_currency(pricing.project_budget),
        "DESIGN_FEE": format_currency(pricing.breakdown.design_fee),
        "TOTAL_OFFSITE": format_currency(pricing.breakdown.offsite),
        "TOTAL_ONSITE": format_currency(pricing.breakdown.onsite),
        "TOTAL_CUSTOMIZATIONS": format_currency(pricing.breakdown.customizations),
        "UNIT_COUNT": pricing.unit_count,
        "UNIT_MODEL_SUMMARY": pricing.unit_model_summary,
    }
    for number, item in enumerate(pricing.payment_schedule, start=1):
        variables[f"MILESTONE_{number}_NAME"] = item.name
        variables[f"MILESTONE_{number}_PERCENT"] = f"{float(item.percentage):g}"
        variables[f"MILESTONE_{number}_AMOUNT"] = format_currency(item.amount)
    return variables


class AssemblyEngine:
    """
    Builds contract documents from templates, clauses and project values.

    Project values are a flat mapping: ``serviceModel``, ``jurisdiction``
    and ``unitCount`` drive clause selection, UPPER_SNAKE keys fill
    ``{{PLACEHOLDER}}`` markers. A placeholder without a value renders as
    ``[NAME]`` and is reported on the result.
    """

    def __init__(
        self,
        clause_store: IClauseStore,
        pricing_engine: Optional[PricingEngine] = None,
        table_renderer: Optional[TableRenderer] = None,
        max_workers: int = 4,
    ):
        self.clause_store = clause_store
        self.pricing_engine = pricing_engine
        self.table_renderer = table_renderer or TableRenderer()
        self.max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def load_template(self, contract_type: str) -> ContractTemplate:
        template = self.clause_store.get_active_template(contract_type)
        if template is None:
            raise TemplateNotFound(
                message=f"No active template for contract type {contract_type}",
                location=f"contract type {contract_type}",
                contract_type=contract_type,
            )
        return template

    @staticmethod
    def select_clause_ids(template: ContractTemplate, values: Mapping[str, Any]) -> List[int]:
        """
        Resolve a template's clause ids for a project.

        Base ids come first, followed by the ids of every conditional rule
        whose key matches the project's value. Duplicates are dropped.
        """
        selected: List[int] = []
        seen = set()

        def add(ids: Iterable[int]) -> None:
            for clause_id in ids:
                if clause_id not in seen:
                    seen.add(clause_id)
                    selected.append(clause_id)

        add(template.base_clause_ids)
        for key, rule_set in template.conditional_rules.items():
            for value_key in rule_keys(values.get(key)):
                add(rule_set.get(value_key, []))
        return selected

    @staticmethod
    def matches_conditions(node: Union[Clause, Exhibit], values: Mapping[str, Any]) -> bool:
        """
        Check a clause or exhibit against project values.

        Every condition must match; a condition on a key the project does
        not set excludes the node.
        """
        for key, expected in node.conditions.items():
            actual = rule_keys(values.get(key))
            if not actual:
                return False
            wanted = {k.upper() for k in rule_keys(expected)}
            if not any(a.upper() in wanted for a in actual):
                return False
        if node.service_model_condition is not None:
            if values.get(SERVICE_MODEL_KEY) is None:
                return False
            if ServiceModel.from_value(values[SERVICE_MODEL_KEY]) != node.service_model_condition:
                return False
        return True

    def select_clauses(self, template: ContractTemplate, values: Mapping[str, Any]) -> List[Clause]:
        clause_ids = self.select_clause_ids(template, values)
        clauses = self.clause_store.get_clauses_by_ids(clause_ids) if clause_ids else []
        unique = {clause.id: clause for clause in clauses}
        kept = [c for c in unique.values() if self.matches_conditions(c, values)]
        return sorted(kept, key=lambda c: (c.sort_order, c.id or 0))

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @staticmethod
    def build_variables(values: Mapping[str, Any], pricing: Optional[PricingSummary] = None) -> Dict[str, Any]:
        """
        Merge caller values with pricing-derived ones.

        Pricing is authoritative: derived money values and the project's
        service model replace caller-supplied ones.
        """
        variables = dict(values)
        if pricing is not None:
            variables.update(pricing_variables(pricing))
            variables[SERVICE_MODEL_KEY] = pricing.service_model.value
            variables[UNIT_COUNT_KEY] = pricing.unit_count
        if variables.get(SERVICE_MODEL_KEY) is not None:
            model = ServiceModel.from_value(variables[SERVICE_MODEL_KEY])
            variables["IS_CRC"] = model == ServiceModel.CRC
            variables["IS_CMOS"] = model == ServiceModel.CMOS
            variables["ON_SITE_SERVICES_SELECTION"] = ON_SITE_SELECTION[model]
        return variables

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_tables(
        self,
        text: str,
        contract_type: str,
        values: Mapping[str, Any],
        pricing: Optional[PricingSummary],
        exhibits: Sequence[Exhibit],
    ) -> str:
        """Replace table placeholders with rendered tables."""
        renderers: Dict[str, Callable[[], str]] = {
            TablePlaceholder.PRICING_BREAKDOWN_TABLE.value:
                lambda: self.table_renderer.render_pricing_table(pricing, contract_type),
            TablePlaceholder.PAYMENT_SCHEDULE_TABLE.value:
                lambda: self.table_renderer.render_payment_schedule(pricing, contract_type),
            TablePlaceholder.UNIT_DETAILS_TABLE.value:
                lambda: self.table_renderer.render_unit_details(pricing),
            TablePlaceholder.SIGNATURE_BLOCK.value:
                lambda: self.table_renderer.render_signature_block(values),
            TablePlaceholder.EXHIBIT_LIST.value:
                lambda: self.table_renderer.render_exhibit_list(exhibits),
        }
        cache: Dict[str, str] = {}

        def replace(match: "re.Match") -> str:
            name = match.group(1)
            if name not in renderers:
                return match.group(0)
            if name not in cache:
                cache[name] = renderers[name]()
            return cache[name]

        return VARIABLE_PATTERN.sub(replace, text)

    @staticmethod
    def substitute(
        text: str,
        values: Mapping[str, Any],
        unresolved: List[UnresolvedPlaceholder],
        source: Optional[str] = None,
    ) -> str:
        """Fill ``{{NAME}}`` placeholders with escaped, formatted values."""

        def replace(match: "re.Match") -> str:
            name = match.group(1)
            value = values.get(name)
            if value is None:
                unresolved.append(UnresolvedPlaceholder(name=name, clause_code=source))
                logger.warning(f"Unresolved placeholder {name} in {source or 'contract'}")
                return f"[{name}]"
            return str(escape(format_value(value)))

        return VARIABLE_PATTERN.sub(replace, text)

    @staticmethod
    def _blocks(content: str) -> str:
        parts = []
        for block in BLOCK_SPLIT.split(content or ""):
            block = block.strip()
            if not block:
                continue
            if VARIABLE_PATTERN.fullmatch(block) and block[2:-2] in TablePlaceholder.names():
                parts.append(block)
            else:
                parts.append(f"<p>{block}</p>")
        return "\n".join(parts)

    def render_clause(self, clause: Clause) -> str:
        """
        Render a clause to HTML with placeholders still in place.

        Levels 1-4 get a heading tag (level 1 upper-cased); the body is split
        on blank lines into paragraphs.
        """
        name = str(escape(clause.name.strip()))
        body = str(escape(clause.content.strip()))

        if clause.block_type == BlockType.LIST_ITEM:
            text = " ".join(part for part in (name, body) if part)
            return f"<li>{text}</li>"
        if clause.block_type == BlockType.CONSPICUOUS:
            text = " ".join(part for part in (name, body) if part)
            return f'<p class="conspicuous"><strong>{text}</strong></p>'

        parts = []
        tag = HEADING_TAGS.get(clause.hierarchy_level)
        if name and tag:
            heading = name.upper() if clause.hierarchy_level == 1 else name
            parts.append(f"<{tag}>{heading}</{tag}>")
        elif name:
            body = f"{name}\n\n{body}" if body else name
        if body:
            parts.append(self._blocks(body))
        return "\n".join(parts)

    def render_disclosure(self, node: Union[Clause, Exhibit], values: Mapping[str, Any]) -> str:
        """Resolve a node's disclosure code against the project jurisdiction."""
        if not node.disclosure_code:
            return ""
        state = values.get(JURISDICTION_KEY)
        if not state:
            logger.warning(f"Disclosure {node.disclosure_code} skipped: project has no jurisdiction")
            return ""
        disclosure = self.clause_store.get_disclosure(str(state), node.disclosure_code)
        if disclosure is None:
            logger.warning(f"No disclosure text for {node.disclosure_code} in {state}")
            return ""
        title = f"<h4>{escape(disclosure.title)}</h4>\n" if disclosure.title else ""
        return (
            f'<div class="state-disclosure" data-code="{escape(node.disclosure_code)}">\n'
            f"{title}{self._blocks(str(escape(disclosure.content)))}\n</div>"
        )

    def render_exhibit(self, exhibit: Exhibit, values: Mapping[str, Any]) -> str:
        parts = [
            f'<section class="exhibit" id="exhibit-{escape(exhibit.letter)}">',
            f"<h1>{escape(exhibit.heading.upper())}</h1>",
            exhibit.content,
        ]
        disclosure = self.render_disclosure(exhibit, values)
        if disclosure:
            parts.append(disclosure)
        parts.append("</section>")
        return "\n".join(part for part in parts if part)

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def assemble(
        self,
        contract_type: str,
        project_values: Optional[Mapping[str, Any]] = None,
        pricing: Optional[PricingSummary] = None,
    ) -> AssembledContract:
        """
        Assemble one contract type for a project.

        Args:
            contract_type: Contract family to build.
            project_values: Flat project configuration.
            pricing: Pricing summary for table placeholders and derived values.

        Returns:
            AssembledContract with HTML content and unresolved placeholders.

        Raises:
            TemplateNotFound: If the contract type has no active template.
        """
        template = self.load_template(contract_type)
        values = self.build_variables(project_values or {}, pricing)

        clauses = self.select_clauses(template, values)
        exhibits = [
            e for e in self.clause_store.get_exhibits(contract_type)
            if self.matches_conditions(e, values)
        ]
        exhibits.sort(key=lambda e: e.letter)

        unresolved: List[UnresolvedPlaceholder] = []
        parts: List[str] = []
        in_list = False
        for clause in clauses:
            html = self.render_clause(clause)
            is_item = clause.block_type == BlockType.LIST_ITEM
            if is_item and not in_list:
                parts.append("<ul>")
            elif not is_item and in_list:
                parts.append("</ul>")
            in_list = is_item
            html = self.render_tables(html, contract_type, values, pricing, exhibits)
            parts.append(self.substitute(html, values, unresolved, clause.code))
            disclosure = self.render_disclosure(clause, values)
            if disclosure:
                parts.append(self.substitute(disclosure, values, unresolved, clause.code))
        if in_list:
            parts.append("</ul>")

        for exhibit in exhibits:
            html = self.render_tables(self.render_exhibit(exhibit, values), contract_type, values, pricing, exhibits)
            parts.append(self.substitute(html, values, unresolved, f"EXHIBIT {exhibit.letter}"))

        if unresolved:
            logger.warning(
                f"{contract_type}: {len(unresolved)} unresolved placeholders "
                f"({', '.join(sorted({u.name for u in unresolved}))})"
            )
        now = datetime.now(timezone.utc)
        logger.info(f"Assembled {contract_type}: {len(clauses)} clauses, {len(exhibits)} exhibits")
        return AssembledContract(
            contract_type=contract_type,
            content="\n".join(parts),
            clause_ids=[c.id for c in clauses],
            exhibit_letters=[e.letter for e in exhibits],
            unresolved=unresolved,
            filename=contract_filename(contract_type, values, now),
            generated_at=now.isoformat(),
        )

    def _pricing_for(self, project_id: Optional[int]) -> Optional[PricingSummary]:
        if project_id is None or self.pricing_engine is None:
            return None
        return self.pricing_engine.calculate(project_id)

    def preview(
        self,
        contract_type: str,
        project_values: Optional[Mapping[str, Any]] = None,
        project_id: Optional[int] = None,
    ) -> AssembledContract:
        """Assemble a single contract type, pricing the project if an id is given."""
        return self.assemble(contract_type, project_values, self._pricing_for(project_id))

    def assemble_package(
        self,
        contract_types: Sequence[str],
        project_values: Optional[Mapping[str, Any]] = None,
        project_id: Optional[int] = None,
        pricing: Optional[PricingSummary] = None,
    ) -> ContractPackage:
        """
        Assemble several contract types concurrently.

        Pricing is computed once and shared. A contract type that fails with
        a ContractAssemblyError (typically TemplateNotFound) is recorded in
        ``errors`` while the others are still produced.

        Raises:
            ProjectNotFound: If ``project_id`` does not exist.
        """
        if pricing is None:
            pricing = self._pricing_for(project_id)
        package = ContractPackage(pricing=pricing)
        types = list(dict.fromkeys(contract_types))
        if not types:
            return package

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(types))) as executor:
            futures = {
                executor.submit(self.assemble, contract_type, project_values, pricing): contract_type
                for contract_type in types
            }
            for future in as_completed(futures):
                contract_type = futures[future]
                try:
                    package.contracts[contract_type] = future.result()
                except ContractAssemblyError as e:
                    logger.warning(f"Skipping {contract_type}: {e}")
                    package.errors[contract_type] = str(e)

        package.contracts = {t: package.contracts[t] for t in types if t in package.contracts}
        logger.info(
            f"Assembled package: {len(package.contracts)} contracts, {len(package.errors)} errors"
        )
        return package
