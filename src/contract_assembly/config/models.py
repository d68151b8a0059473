"""Data models for configuration management."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern


@dataclass
class JurisdictionMapping:
    """
    Jurisdiction recognized by the condition extractor.

    Maps a two-letter code to the names that introduce that jurisdiction's
    provisions in source documents.
    """
    code: str
    names: List[str]
    description: Optional[str] = None

    def matches(self, text: str) -> bool:
        """Check if text starts with one of the jurisdiction names."""
        text_upper = text.strip().upper()
        return any(
            re.match(rf"{re.escape(name.upper())}\b", text_upper)
            for name in self.names
        )


@dataclass
class MarkerRepair:
    """
    Known-malformed marker and its correction.

    ``pattern`` is a regular expression; ``replacement`` follows
    ``re.sub`` syntax.
    """
    id: str
    pattern: str
    replacement: str
    enabled: bool = True
    description: Optional[str] = None

    @property
    def compiled(self) -> Pattern:
        return re.compile(self.pattern)


@dataclass
class MilestoneDefault:
    """Default payment milestone used when a project has none."""
    name: str
    percentage: float
    phase: str = ""


@dataclass
class TemplateDefinition:
    """
    Contract template expressed with clause codes.

    Codes are resolved to stored clause ids when the template is applied.
    """
    contract_type: str
    name: str
    base_clause_codes: List[str] = field(default_factory=list)
    conditional_rules: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    is_active: bool = True


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another validation result into this one."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings
        )


class ConfigurationError(Exception):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.message = message
        self.validation_result = validation_result


@dataclass
class SystemConfiguration:
    """
    Complete system configuration.

    Empty lists mean "use the built-in defaults" for that concern.
    """
    jurisdictions: List[JurisdictionMapping] = field(default_factory=list)
    marker_repairs: List[MarkerRepair] = field(default_factory=list)
    default_milestones: List[MilestoneDefault] = field(default_factory=list)
    dynamic_exhibit_letters: List[str] = field(default_factory=lambda: ["G", "H"])
    templates: List[TemplateDefinition] = field(default_factory=list)
    version: int = 1
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_enabled_repairs(self) -> List[MarkerRepair]:
        return [r for r in self.marker_repairs if r.enabled]

    def get_template(self, contract_type: str) -> Optional[TemplateDefinition]:
        for template in self.templates:
            if template.contract_type == contract_type:
                return template
        return None
