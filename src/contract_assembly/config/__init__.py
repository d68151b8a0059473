"""Configuration management for the contract assembly system."""

from .config_manager import ConfigurationManager
from .models import (
    ConfigurationError,
    JurisdictionMapping,
    MarkerRepair,
    MilestoneDefault,
    SystemConfiguration,
    TemplateDefinition,
    ValidationResult,
)

__all__ = [
    "ConfigurationManager",
    "ConfigurationError",
    "JurisdictionMapping",
    "MarkerRepair",
    "MilestoneDefault",
    "SystemConfiguration",
    "TemplateDefinition",
    "ValidationResult",
]
