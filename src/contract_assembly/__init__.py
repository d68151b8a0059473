"""
Contract Assembly System

Decomposes master contract documents into a conditional clause library and
assembles project-specific contracts with pricing tables.
"""

__version__ = "0.1.0"

# Export main components
from .models.enums import BlockType, ContractType, ServiceModel, TablePlaceholder
from .models.clause import Clause, ContractTemplate, Exhibit, StateDisclosure
from .models.pricing import PaymentMilestone, PricingBreakdown, PricingSummary
from .models.assembly import AssembledContract, ContractPackage, UnresolvedPlaceholder
from .exceptions import (
    ContractAssemblyError,
    DocumentReadError,
    HeaderValidationWarning,
    IngestionIssues,
    IngestionPartialFailure,
    MalformedMarker,
    ProjectNotFound,
    TemplateNotFound,
)
from .ingestion import IngestionPipeline, IngestionReport, ParagraphNormalizer, TreeBuilder
from .pricing import PricingEngine
from .assembly import AssemblyEngine
from .rendering import TableRenderer
from .storage import DatabaseManager, SqlClauseStore, SqlProjectRepository
from .config import ConfigurationManager, ConfigurationError, SystemConfiguration, ValidationResult
from .pipeline import ContractPipeline, PipelineConfig

__all__ = [
    "BlockType",
    "ContractType",
    "ServiceModel",
    "TablePlaceholder",
    "Clause",
    "ContractTemplate",
    "Exhibit",
    "StateDisclosure",
    "PaymentMilestone",
    "PricingBreakdown",
    "PricingSummary",
    "AssembledContract",
    "ContractPackage",
    "UnresolvedPlaceholder",
    "ContractAssemblyError",
    "DocumentReadError",
    "HeaderValidationWarning",
    "IngestionIssues",
    "IngestionPartialFailure",
    "MalformedMarker",
    "ProjectNotFound",
    "TemplateNotFound",
    "IngestionPipeline",
    "IngestionReport",
    "ParagraphNormalizer",
    "TreeBuilder",
    "PricingEngine",
    "AssemblyEngine",
    "TableRenderer",
    "DatabaseManager",
    "SqlClauseStore",
    "SqlProjectRepository",
    "ConfigurationManager",
    "ConfigurationError",
    "SystemConfiguration",
    "ValidationResult",
    "ContractPipeline",
    "PipelineConfig",
]
