"""Enumerations for the contract assembly system."""

from enum import Enum


class BlockType(Enum):
    """Kinds of nodes in the decomposed clause tree."""
    SECTION = "section"
    CLAUSE = "clause"
    PARAGRAPH = "paragraph"
    TABLE = "table"
    LIST_ITEM = "list_item"
    CONSPICUOUS = "conspicuous"
    DYNAMIC_DISCLOSURE = "dynamic_disclosure"


class ServiceModel(Enum):
    """Who manages on-site construction for a project."""
    CRC = "CRC"    # client-retained contractor
    CMOS = "CMOS"  # company-managed on-site services

    @classmethod
    def from_value(cls, value) -> "ServiceModel":
        """Resolve a project value; anything other than CMOS is CRC."""
        if isinstance(value, ServiceModel):
            return value
        if value is not None and str(value).strip().upper() == cls.CMOS.value:
            return cls.CMOS
        return cls.CRC


class BuilderState(Enum):
    """States of the tree builder state machine."""
    NO_SECTION = "no_section"
    IN_SECTION = "in_section"
    IN_CLAUSE = "in_clause"
    IN_SUBCLAUSE = "in_subclause"


class TablePlaceholder(Enum):
    """Closed set of placeholders replaced by rendered tables."""
    PRICING_BREAKDOWN_TABLE = "PRICING_BREAKDOWN_TABLE"
    PAYMENT_SCHEDULE_TABLE = "PAYMENT_SCHEDULE_TABLE"
    UNIT_DETAILS_TABLE = "UNIT_DETAILS_TABLE"
    SIGNATURE_BLOCK = "SIGNATURE_BLOCK"
    EXHIBIT_LIST = "EXHIBIT_LIST"

    @classmethod
    def names(cls) -> frozenset:
        return frozenset(member.value for member in cls)


class ContractType(Enum):
    """Contract families produced for a project."""
    ONE = "ONE"
    MANUFACTURING = "MANUFACTURING"
    ONSITE = "ONSITE"
    MASTER_EF = "MASTER_EF"
