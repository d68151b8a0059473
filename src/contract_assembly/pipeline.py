"""End-to-end orchestration for the contract assembly system.

Wires the database, clause store, project repository, configuration,
ingestion, pricing and assembly components together for the CLI and the
HTTP API.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .assembly.engine import AssemblyEngine
from .config.config_manager import ConfigurationManager
from .config.models import ConfigurationError
from .exceptions import ProjectNotFound
from .ingestion.classifier import HierarchyClassifier
from .ingestion.conditions import ConditionExtractor
from .ingestion.normalizer import ParagraphInput, ParagraphNormalizer
from .ingestion.pipeline import IngestionPipeline, IngestionReport
from .ingestion.tree_builder import TreeBuilder
from .models.assembly import AssembledContract, ContractPackage
from .models.clause import ContractTemplate
from .models.pricing import MilestoneRecord, PricingSummary
from .pricing.engine import DEFAULT_REMAINDER_MILESTONE, PricingEngine
from .rendering.tables import TableRenderer
from .storage.clause_store import SqlClauseStore
from .storage.database import DatabaseManager
from .storage.project_repository import SqlProjectRepository


logger = logging.getLogger(__name__)


TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class PipelineConfig:
    """Configuration for the contract assembly pipeline."""

    # Database configuration
    database_url: Optional[str] = None

    # Package generation fans out over this many threads
    max_workers: int = 4

    # Ingestion: stage the whole replacement in one transaction
    atomic_ingestion: bool = False
    # Derive the contract template from stored clauses after ingestion
    rebuild_templates: bool = True

    # Pricing: milestone that absorbs the rounding remainder
    remainder_milestone: str = DEFAULT_REMAINDER_MILESTONE

    # Configuration files
    config_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a configuration from CONTRACT_ASSEMBLY_* environment variables."""
        config = cls()
        config.database_url = os.getenv("CONTRACT_ASSEMBLY_DATABASE_URL") or None
        workers = os.getenv("CONTRACT_ASSEMBLY_MAX_WORKERS")
        if workers:
            try:
                config.max_workers = max(1, int(workers))
            except ValueError:
                logger.warning(f"Ignoring invalid CONTRACT_ASSEMBLY_MAX_WORKERS={workers!r}")
        atomic = os.getenv("CONTRACT_ASSEMBLY_ATOMIC_INGESTION")
        if atomic is not None:
            config.atomic_ingestion = atomic.strip().lower() in TRUE_VALUES
        config.remainder_milestone = (
            os.getenv("CONTRACT_ASSEMBLY_REMAINDER_MILESTONE") or config.remainder_milestone
        )
        config.config_dir = os.getenv("CONTRACT_ASSEMBLY_CONFIG_DIR") or None
        return config


class ContractPipeline:
    """
    Main entry point tying ingestion, pricing and assembly together.

    Components are created from ``PipelineConfig`` unless passed in.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        db_manager: Optional[DatabaseManager] = None,
        config_manager: Optional[ConfigurationManager] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration.
            db_manager: Optional database manager (created if not provided).
            config_manager: Optional configuration manager (created if not provided).
        """
        self.config = config or PipelineConfig()
        self.db_manager = db_manager or DatabaseManager(database_url=self.config.database_url)

        self.config_manager = config_manager or ConfigurationManager(config_dir=self.config.config_dir)
        if self.config.config_dir and not self.config_manager.is_loaded:
            try:
                self.config_manager.load_from_directory(self.config.config_dir)
                logger.info(f"Loaded configuration from {self.config.config_dir}")
            except ConfigurationError as e:
                logger.warning(f"Failed to load configuration: {e}")
        system = self.config_manager.configuration

        self.clause_store = SqlClauseStore(self.db_manager)
        self.project_repository = SqlProjectRepository(self.db_manager)

        builder = TreeBuilder(
            classifier=HierarchyClassifier(),
            extractor=ConditionExtractor(system.jurisdictions),
            dynamic_exhibit_letters=system.dynamic_exhibit_letters,
        )
        self.ingestion = IngestionPipeline(
            store=self.clause_store,
            normalizer=ParagraphNormalizer(system.get_enabled_repairs()),
            builder=builder,
            atomic=self.config.atomic_ingestion,
        )

        milestones = [
            MilestoneRecord(name=m.name, percentage=m.percentage, phase=m.phase, milestone_number=i)
            for i, m in enumerate(system.default_milestones, start=1)
        ]
        self.pricing = PricingEngine(
            self.project_repository,
            default_milestones=milestones or None,
            remainder_milestone=self.config.remainder_milestone,
        )
        self.assembly = AssemblyEngine(
            self.clause_store,
            pricing_engine=self.pricing,
            table_renderer=TableRenderer(),
            max_workers=self.config.max_workers,
        )
        logger.info("Contract pipeline initialized")

    def init_database(self) -> None:
        self.db_manager.init_database()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_file(
        self, file_path: Union[str, Path], contract_type: str, atomic: Optional[bool] = None
    ) -> IngestionReport:
        """Ingest a .docx source document and refresh the contract template."""
        report = self.ingestion.ingest_file(file_path, contract_type, atomic=atomic)
        self._refresh_template(contract_type, report)
        return report

    def ingest(
        self, contract_type: str, paragraphs: Iterable[ParagraphInput], atomic: Optional[bool] = None
    ) -> IngestionReport:
        """Ingest an already-extracted ``(style, text)`` paragraph stream."""
        report = self.ingestion.ingest(contract_type, paragraphs, atomic=atomic)
        self._refresh_template(contract_type, report)
        return report

    def _refresh_template(self, contract_type: str, report: IngestionReport) -> Optional[ContractTemplate]:
        if not self.config.rebuild_templates or report.stored_count == 0:
            return None
        definition = self.config_manager.configuration.get_template(contract_type)
        if definition is not None:
            return self.clause_store.apply_template_definition(definition)
        return self.clause_store.rebuild_template(contract_type)

    # ------------------------------------------------------------------
    # Pricing and assembly
    # ------------------------------------------------------------------

    def calculate_pricing(self, project_id: int) -> PricingSummary:
        return self.pricing.calculate(project_id)

    def project_values(self, project_id: int, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Flat project configuration for assembly.

        Values read from the project record come first; caller overrides
        replace them.

        Raises:
            ProjectNotFound: If the project does not exist.
        """
        project = self.project_repository.get_project(project_id)
        if project is None:
            raise ProjectNotFound(message=f"Project {project_id} not found", project_id=project_id)
        values: Dict[str, Any] = {
            "serviceModel": project.service_model.value,
            "PROJECT_NAME": project.name,
            "PROJECT_NUMBER": project.project_number,
        }
        if project.jurisdiction:
            values["jurisdiction"] = project.jurisdiction
            values["PROJECT_STATE"] = project.jurisdiction
        values.update(overrides or {})
        return values

    def preview(
        self,
        contract_type: str,
        project_id: Optional[int] = None,
        values: Optional[Mapping[str, Any]] = None,
    ) -> AssembledContract:
        """Assemble one contract type for a project or for bare values."""
        if project_id is None:
            return self.assembly.preview(contract_type, values or {})
        return self.assembly.preview(contract_type, self.project_values(project_id, values), project_id)

    def generate_package(
        self,
        contract_types: Sequence[str],
        project_id: Optional[int] = None,
        values: Optional[Mapping[str, Any]] = None,
    ) -> ContractPackage:
        """Assemble several contract types with pricing computed once."""
        project_values = self.project_values(project_id, values) if project_id is not None else dict(values or {})
        return self.assembly.assemble_package(contract_types, project_values, project_id=project_id)

    @staticmethod
    def write_package(package: ContractPackage, output_dir: Union[str, Path]) -> List[Path]:
        """Write each assembled contract to ``output_dir`` under its filename."""
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for contract in package.contracts.values():
            path = directory / contract.filename
            path.write_text(contract.content, encoding="utf-8")
            written.append(path)
            logger.info(f"Wrote {contract.contract_type} to {path}")
        return written

    def close(self) -> None:
        self.db_manager.close()
