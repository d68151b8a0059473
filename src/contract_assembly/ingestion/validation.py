"""Structural quality checks on a built clause tree."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from ..models.clause import Clause


@dataclass
class QualityIssue:
    """Represents a single quality issue found during validation.

    Examples include dangling parent references, cycles, or children
    whose hierarchy level is above their parent's.
    """

    code: str
    message: str
    severity: str  # "error" or "warning"


@dataclass
class QualityReport:
    """Validation report for one built clause tree.

    A tree with any error-severity issue must not be stored.
    """

    contract_type: str
    passed: bool
    issues: List[QualityIssue] = field(default_factory=list)
    clause_count: int = 0
    empty_clause_count: int = 0

    @property
    def errors(self) -> List[QualityIssue]:
        return [i for i in self.issues if i.severity == "error"]


def validate_tree(contract_type: str, clauses: Sequence[Clause]) -> QualityReport:
    """Check the parent graph, hierarchy levels, sort order and codes.

    Parent references are by temp id, as produced by the tree builder.
    """
    issues: List[QualityIssue] = []
    by_temp: Dict[str, Clause] = {c.temp_id: c for c in clauses if c.temp_id}
    position = {c.temp_id: i for i, c in enumerate(clauses) if c.temp_id}

    if not clauses:
        issues.append(QualityIssue("NO_CLAUSES", "No clauses were produced for the document.", "warning"))

    for index, clause in enumerate(clauses):
        parent_ref = clause.parent_temp_id
        if parent_ref is None:
            continue
        parent = by_temp.get(parent_ref)
        if parent is None:
            issues.append(QualityIssue(
                "PARENT_MISSING", f"{clause.code}: parent {parent_ref} does not exist", "error"
            ))
            continue
        if position[parent_ref] >= index:
            issues.append(QualityIssue(
                "PARENT_AFTER_CHILD", f"{clause.code}: parent is created after the child", "error"
            ))
        if clause.hierarchy_level < parent.hierarchy_level:
            issues.append(QualityIssue(
                "LEVEL_INVERSION",
                f"{clause.code}: level {clause.hierarchy_level} under level {parent.hierarchy_level}",
                "error",
            ))

    # Cycle check: every chain must reach a root within len(clauses) hops.
    for clause in clauses:
        seen = set()
        current = clause
        while current is not None and current.parent_temp_id is not None:
            if current.temp_id in seen:
                issues.append(QualityIssue("CYCLE", f"{clause.code}: parent chain loops", "error"))
                break
            seen.add(current.temp_id)
            current = by_temp.get(current.parent_temp_id)

    orders = [c.sort_order for c in clauses]
    if any(b <= a for a, b in zip(orders, orders[1:])):
        issues.append(QualityIssue(
            "SORT_ORDER_NOT_INCREASING", "Sort orders do not follow document order.", "error"
        ))

    duplicates = sorted(code for code, n in Counter(c.code for c in clauses).items() if n > 1)
    if duplicates:
        issues.append(QualityIssue("DUPLICATE_CODE", f"Duplicate clause codes: {duplicates}", "error"))

    empty = sum(1 for c in clauses if not c.content.strip() and not c.name.strip())
    if empty:
        issues.append(QualityIssue("EMPTY_CLAUSES", f"{empty} clauses have no name or content", "warning"))

    return QualityReport(
        contract_type=contract_type,
        passed=not any(i.severity == "error" for i in issues),
        issues=issues,
        clause_count=len(clauses),
        empty_clause_count=empty,
    )
