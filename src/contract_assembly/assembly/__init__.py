"""Contract assembly."""

from .engine import (
    AssemblyEngine,
    contract_filename,
    format_value,
    pricing_variables,
    rule_keys,
)

__all__ = [
    "AssemblyEngine",
    "contract_filename",
    "format_value",
    "pricing_variables",
    "rule_keys",
]
