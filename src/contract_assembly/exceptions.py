"""Error taxonomy for contract ingestion and assembly."""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class ContractAssemblyError(Exception):
    """
    Base exception for ingestion and assembly errors.

    Carries a location (paragraph index, clause code, file) and free-form
    details so issues can be logged and returned to callers as dictionaries.

    Attributes:
        message: Human-readable error description.
        location: Where the problem was found.
        details: Additional error details.
    """
    message: str
    location: Optional[str] = None
    details: Optional[dict] = field(default_factory=dict)

    def __post_init__(self):
        if self.details is None:
            self.details = {}
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [self.message]
        if self.location:
            parts.append(f"Location: {self.location}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "location": self.location,
            "details": self.details,
        }


@dataclass
class TemplateNotFound(ContractAssemblyError):
    """No active template exists for the requested contract type."""
    contract_type: Optional[str] = None


@dataclass
class ProjectNotFound(ContractAssemblyError):
    """Pricing was requested for a project id that does not exist."""
    project_id: Optional[int] = None


@dataclass
class DocumentReadError(ContractAssemblyError):
    """A source document could not be opened or is not a supported format."""
    file_path: Optional[str] = None


@dataclass
class MalformedMarker(ContractAssemblyError):
    """
    Tag-like construct that does not match the marker syntax.

    Recorded rather than raised: the text is kept literally.
    """
    fragment: str = ""


@dataclass
class HeaderValidationWarning(ContractAssemblyError):
    """
    Header matched the loose exhibit pattern but failed the strict one.

    The split still happens; this is recorded for review.
    """
    header_text: str = ""


@dataclass
class IngestionPartialFailure(ContractAssemblyError):
    """A single clause or exhibit could not be stored during ingestion."""
    source_text: str = ""
    code: Optional[str] = None


class IngestionIssues:
    """
    Collector for issues raised while ingesting one document.

    Ingestion keeps going after recoverable problems; the collected errors
    and warnings are reported with the run result.
    """

    def __init__(self, source: str = ""):
        self.source = source
        self.errors: List[ContractAssemblyError] = []
        self.warnings: List[ContractAssemblyError] = []

    def add_error(self, error: ContractAssemblyError) -> None:
        """Add an error to the collection."""
        self.errors.append(error)

    def add_warning(self, warning: ContractAssemblyError) -> None:
        """Add a non-fatal issue to the collection."""
        self.warnings.append(warning)

    def extend(self, other: "IngestionIssues") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def has_errors(self) -> bool:
        """Check if any errors were recorded."""
        return len(self.errors) > 0

    def of_type(self, issue_type: type) -> List[ContractAssemblyError]:
        """Return errors and warnings of the given class."""
        return [i for i in self.errors + self.warnings if isinstance(i, issue_type)]

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of all errors and warnings."""
        return {
            "source": self.source,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
