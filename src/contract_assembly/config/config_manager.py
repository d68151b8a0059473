"""Configuration Manager implementation for the contract assembly system.

This module loads, validates and exposes configuration for jurisdiction
tables, marker repairs, default payment milestones and contract templates.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import (
    ConfigurationError,
    JurisdictionMapping,
    MarkerRepair,
    MilestoneDefault,
    SystemConfiguration,
    TemplateDefinition,
    ValidationResult,
)


Source = Union[str, Path, Dict[str, Any], List[Dict[str, Any]]]

CONFIG_FILES = {
    "jurisdictions": "jurisdictions.json",
    "marker_repairs": "marker_repairs.json",
    "milestones": "milestones.json",
    "templates": "templates.json",
    "ingestion": "ingestion.json",
}


class ConfigurationManager:
    """
    Manager for system configuration.

    Every loader accepts a JSON file path, a dictionary wrapping a list
    under a well-known key, or the list itself. Invalid input raises
    ConfigurationError and leaves the current configuration untouched.
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_dir: Optional directory path for configuration files.
        """
        self._config_dir = Path(config_dir) if config_dir else None
        self._configuration = SystemConfiguration()
        self._is_loaded = False

    @property
    def configuration(self) -> SystemConfiguration:
        """Get the current system configuration."""
        return self._configuration

    @property
    def is_loaded(self) -> bool:
        """Check if configuration has been loaded."""
        return self._is_loaded

    # =========================================================================
    # Jurisdictions
    # =========================================================================

    def load_jurisdictions(self, source: Source) -> ValidationResult:
        """
        Load and validate jurisdiction mappings.

        Args:
            source: File path, dictionary with a "jurisdictions" key, or list.

        Returns:
            ValidationResult with any warnings.

        Raises:
            ConfigurationError: If validation fails.
        """
        items = self._unwrap(self._parse_source(source), "jurisdictions")
        result = ValidationResult(is_valid=True)
        mappings: List[JurisdictionMapping] = []

        for i, data in enumerate(items):
            prefix = f"Jurisdiction [{i}]"
            item_result = self._require(data, ["code", "names"], prefix)
            if item_result.is_valid:
                code = data["code"]
                if not isinstance(code, str) or not re.fullmatch(r"[A-Z]{2}", code.strip()):
                    item_result.add_error(f"{prefix}: 'code' must be a two-letter uppercase code")
                names = data["names"]
                if not isinstance(names, list) or not names:
                    item_result.add_error(f"{prefix}: 'names' must be a non-empty list")
                elif not all(isinstance(n, str) and n.strip() for n in names):
                    item_result.add_error(f"{prefix}: All names must be non-empty strings")
            result = result.merge(item_result)
            if item_result.is_valid:
                mappings.append(JurisdictionMapping(
                    code=data["code"].strip(),
                    names=[n.strip() for n in data["names"]],
                    description=data.get("description"),
                ))

        codes = [m.code for m in mappings]
        duplicates = {c for c in codes if codes.count(c) > 1}
        if duplicates:
            result.add_error(f"Duplicate jurisdiction codes found: {sorted(duplicates)}")

        if not result.is_valid:
            raise ConfigurationError("Jurisdiction validation failed", validation_result=result)

        self._configuration.jurisdictions = mappings
        self._is_loaded = True
        return result

    # =========================================================================
    # Marker repairs
    # =========================================================================

    def load_marker_repairs(self, source: Source) -> ValidationResult:
        """
        Load and validate known-malformed marker substitutions.

        Raises:
            ConfigurationError: If a pattern is missing or does not compile.
        """
        items = self._unwrap(self._parse_source(source), "repairs")
        result = ValidationResult(is_valid=True)
        repairs: List[MarkerRepair] = []

        for i, data in enumerate(items):
            prefix = f"Marker repair [{i}]"
            item_result = self._require(data, ["id", "pattern", "replacement"], prefix)
            if item_result.is_valid:
                try:
                    re.compile(data["pattern"])
                except re.error as e:
                    item_result.add_error(f"{prefix}: Invalid regex pattern: {e}")
                if not isinstance(data["replacement"], str):
                    item_result.add_error(f"{prefix}: 'replacement' must be a string")
            result = result.merge(item_result)
            if item_result.is_valid:
                repairs.append(MarkerRepair(
                    id=data["id"],
                    pattern=data["pattern"],
                    replacement=data["replacement"],
                    enabled=data.get("enabled", True),
                    description=data.get("description"),
                ))

        if not result.is_valid:
            raise ConfigurationError("Marker repair validation failed", validation_result=result)

        self._configuration.marker_repairs = repairs
        self._is_loaded = True
        return result

    # =========================================================================
    # Default milestones
    # =========================================================================

    def load_default_milestones(self, source: Source) -> ValidationResult:
        """
        Load the default payment milestone split.

        Percentages must be positive and add up to 100.

        Raises:
            ConfigurationError: If validation fails.
        """
        items = self._unwrap(self._parse_source(source), "milestones")
        result = ValidationResult(is_valid=True)
        milestones: List[MilestoneDefault] = []

        for i, data in enumerate(items):
            prefix = f"Milestone [{i}]"
            item_result = self._require(data, ["name", "percentage"], prefix)
            if item_result.is_valid:
                pct = data["percentage"]
                if isinstance(pct, bool) or not isinstance(pct, (int, float)) or pct <= 0:
                    item_result.add_error(f"{prefix}: 'percentage' must be a positive number")
            result = result.merge(item_result)
            if item_result.is_valid:
                milestones.append(MilestoneDefault(
                    name=data["name"],
                    percentage=float(data["percentage"]),
                    phase=data.get("phase", ""),
                ))

        if result.is_valid:
            total = sum(m.percentage for m in milestones)
            if abs(total - 100.0) > 1e-6:
                result.add_error(f"Milestone percentages must sum to 100, got {total}")

        if not result.is_valid:
            raise ConfigurationError("Milestone validation failed", validation_result=result)

        self._configuration.default_milestones = milestones
        self._is_loaded = True
        return result

    # =========================================================================
    # Templates
    # =========================================================================

    def load_templates(self, source: Source) -> ValidationResult:
        """
        Load contract template definitions keyed by clause code.

        Raises:
            ConfigurationError: If validation fails.
        """
        items = self._unwrap(self._parse_source(source), "templates")
        result = ValidationResult(is_valid=True)
        templates: List[TemplateDefinition] = []

        for i, data in enumerate(items):
            prefix = f"Template [{i}]"
            item_result = self._require(data, ["contract_type", "name"], prefix)
            if item_result.is_valid:
                base = data.get("base_clause_codes", [])
                if not isinstance(base, list) or not all(isinstance(c, str) for c in base):
                    item_result.add_error(f"{prefix}: 'base_clause_codes' must be a list of strings")
                rules = data.get("conditional_rules", {})
                if not isinstance(rules, dict):
                    item_result.add_error(f"{prefix}: 'conditional_rules' must be an object")
                else:
                    for key, rule_set in rules.items():
                        if not isinstance(rule_set, dict):
                            item_result.add_error(f"{prefix}: rule set '{key}' must be an object")
                            continue
                        for value, codes in rule_set.items():
                            if not isinstance(codes, list):
                                item_result.add_error(
                                    f"{prefix}: rule '{key}={value}' must list clause codes"
                                )
                if not base and not rules:
                    item_result.add_warning(f"{prefix}: template selects no clauses")
            result = result.merge(item_result)
            if item_result.is_valid:
                templates.append(TemplateDefinition(
                    contract_type=data["contract_type"],
                    name=data["name"],
                    base_clause_codes=list(data.get("base_clause_codes", [])),
                    conditional_rules={
                        key: {str(v): list(codes) for v, codes in rule_set.items()}
                        for key, rule_set in data.get("conditional_rules", {}).items()
                    },
                    is_active=data.get("is_active", True),
                ))

        types = [t.contract_type for t in templates if t.is_active]
        duplicates = {t for t in types if types.count(t) > 1}
        if duplicates:
            result.add_error(f"More than one active template for: {sorted(duplicates)}")

        if not result.is_valid:
            raise ConfigurationError("Template validation failed", validation_result=result)

        self._configuration.templates = templates
        self._is_loaded = True
        return result

    def set_dynamic_exhibit_letters(self, letters: List[str]) -> None:
        if not all(isinstance(l, str) and re.fullmatch(r"[A-Z]", l) for l in letters):
            raise ConfigurationError("Dynamic exhibit letters must be single uppercase letters")
        self._configuration.dynamic_exhibit_letters = list(letters)

    # =========================================================================
    # Loading / saving
    # =========================================================================

    def _parse_source(self, source: Source) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """Parse configuration source to raw data."""
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")

            with open(path, "r", encoding="utf-8") as f:
                try:
                    return json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

        return source

    @staticmethod
    def _unwrap(raw: Union[Dict[str, Any], List[Dict[str, Any]]], key: str) -> List[Dict[str, Any]]:
        if isinstance(raw, dict):
            return raw[key] if key in raw else [raw]
        return raw

    @staticmethod
    def _require(data: Any, fields: List[str], prefix: str) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if not isinstance(data, dict):
            result.add_error(f"{prefix}: Entry must be an object")
            return result
        for name in fields:
            if name not in data:
                result.add_error(f"{prefix}: Missing required field '{name}'")
        return result

    def load_from_directory(self, config_dir: Optional[Union[str, Path]] = None) -> ValidationResult:
        """
        Load every configuration file present in a directory.

        Missing files are skipped; the built-in defaults stay in effect
        for those concerns.
        """
        directory = Path(config_dir) if config_dir else self._config_dir
        if directory is None:
            raise ConfigurationError("No configuration directory given")
        if not directory.is_dir():
            raise ConfigurationError(f"Configuration directory not found: {directory}")

        result = ValidationResult(is_valid=True)
        loaders = {
            "jurisdictions": self.load_jurisdictions,
            "marker_repairs": self.load_marker_repairs,
            "milestones": self.load_default_milestones,
            "templates": self.load_templates,
        }
        for key, loader in loaders.items():
            path = directory / CONFIG_FILES[key]
            if path.exists():
                result = result.merge(loader(path))

        ingestion_path = directory / CONFIG_FILES["ingestion"]
        if ingestion_path.exists():
            data = self._parse_source(ingestion_path)
            if "dynamic_exhibit_letters" in data:
                self.set_dynamic_exhibit_letters(data["dynamic_exhibit_letters"])

        self._config_dir = directory
        self._is_loaded = True
        return result

    def save_to_directory(self, config_dir: Union[str, Path]) -> None:
        """Write the current configuration as JSON files."""
        directory = Path(config_dir)
        directory.mkdir(parents=True, exist_ok=True)
        data = self.to_dict()
        for key in ("jurisdictions", "marker_repairs", "milestones", "templates"):
            wrapper = "repairs" if key == "marker_repairs" else key
            with open(directory / CONFIG_FILES[key], "w", encoding="utf-8") as f:
                json.dump({wrapper: data[key]}, f, indent=2)
        with open(directory / CONFIG_FILES["ingestion"], "w", encoding="utf-8") as f:
            json.dump({"dynamic_exhibit_letters": data["dynamic_exhibit_letters"]}, f, indent=2)

    def reset(self) -> None:
        """Reset to the built-in defaults."""
        self._configuration = SystemConfiguration()
        self._is_loaded = False

    def to_dict(self) -> Dict[str, Any]:
        config = self._configuration
        return {
            "jurisdictions": [
                {"code": j.code, "names": j.names, "description": j.description}
                for j in config.jurisdictions
            ],
            "marker_repairs": [
                {
                    "id": r.id,
                    "pattern": r.pattern,
                    "replacement": r.replacement,
                    "enabled": r.enabled,
                    "description": r.description,
                }
                for r in config.marker_repairs
            ],
            "milestones": [
                {"name": m.name, "percentage": m.percentage, "phase": m.phase}
                for m in config.default_milestones
            ],
            "templates": [
                {
                    "contract_type": t.contract_type,
                    "name": t.name,
                    "base_clause_codes": t.base_clause_codes,
                    "conditional_rules": t.conditional_rules,
                    "is_active": t.is_active,
                }
                for t in config.templates
            ],
            "dynamic_exhibit_letters": config.dynamic_exhibit_letters,
            "version": config.version,
        }
