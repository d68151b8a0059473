"""Data models for the contract assembly system."""

from .enums import BlockType, BuilderState, ContractType, ServiceModel, TablePlaceholder
from .document import NormalizedParagraph, StyledParagraph
from .clause import (
    Clause,
    ContractTemplate,
    Exhibit,
    StateDisclosure,
    VARIABLE_PATTERN,
    find_variables,
)
from .pricing import (
    MilestoneRecord,
    PaymentMilestone,
    PricingBreakdown,
    PricingSummary,
    ProjectRecord,
    UnitRecord,
)
from .assembly import AssembledContract, ContractPackage, UnresolvedPlaceholder

__all__ = [
    "BlockType",
    "BuilderState",
    "ContractType",
    "ServiceModel",
    "TablePlaceholder",
    "NormalizedParagraph",
    "StyledParagraph",
    "Clause",
    "ContractTemplate",
    "Exhibit",
    "StateDisclosure",
    "VARIABLE_PATTERN",
    "find_variables",
    "MilestoneRecord",
    "PaymentMilestone",
    "PricingBreakdown",
    "PricingSummary",
    "ProjectRecord",
    "UnitRecord",
    "AssembledContract",
    "ContractPackage",
    "UnresolvedPlaceholder",
]
