"""Command line interface for the contract assembly system.

    contract-assembly init-db
    contract-assembly ingest master.docx --contract-type ONE [--atomic]
    contract-assembly generate --project-id 1 --contract-type ONE ONSITE --output-dir out/
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from .config.models import ConfigurationError
from .exceptions import ContractAssemblyError
from .pipeline import ContractPipeline, PipelineConfig


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contract-assembly",
        description="Decompose contract documents into a clause library and assemble project contracts.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("CONTRACT_ASSEMBLY_LOG_LEVEL", "INFO"),
        help="Logging level (default: CONTRACT_ASSEMBLY_LOG_LEVEL or INFO).",
    )
    parser.add_argument("--database-url", help="Override CONTRACT_ASSEMBLY_DATABASE_URL.")
    parser.add_argument("--config-dir", help="Directory with JSON configuration files.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables.")

    ingest = sub.add_parser("ingest", help="Replace a contract type's clause library from a .docx file.")
    ingest.add_argument("file", help="Path to the source .docx document.")
    ingest.add_argument("--contract-type", required=True, help="Contract type, e.g. ONE.")
    ingest.add_argument(
        "--atomic",
        action="store_true",
        default=None,
        help="Stage the replacement in one transaction.",
    )

    generate = sub.add_parser("generate", help="Assemble contracts for a project.")
    generate.add_argument("--project-id", type=int, required=True, help="Project to generate for.")
    generate.add_argument(
        "--contract-type",
        nargs="+",
        required=True,
        help="One or more contract types, e.g. ONE MANUFACTURING ONSITE.",
    )
    generate.add_argument("--output-dir", default="generated", help="Where to write the HTML files.")
    generate.add_argument("--values", help="JSON file with extra project values.")
    return parser


def _load_values(path: Optional[str]) -> dict:
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = PipelineConfig.from_env()
    if args.database_url:
        config.database_url = args.database_url
    if args.config_dir:
        config.config_dir = args.config_dir

    pipeline = ContractPipeline(config=config)
    try:
        if args.command == "init-db":
            pipeline.init_database()
            print("Database tables created.")
            return 0

        if args.command == "ingest":
            report = pipeline.ingest_file(args.file, args.contract_type.upper(), atomic=args.atomic)
            print(json.dumps(report.to_dict(), indent=2, default=str))
            return 0 if report.success else 1

        if args.command == "generate":
            package = pipeline.generate_package(
                [t.upper() for t in args.contract_type],
                project_id=args.project_id,
                values=_load_values(args.values),
            )
            for path in pipeline.write_package(package, args.output_dir):
                print(path)
            for contract_type, error in package.errors.items():
                print(f"{contract_type}: {error}", file=sys.stderr)
            return 0 if package.success else 1
    except (ContractAssemblyError, ConfigurationError, FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        pipeline.close()

    parser.error(f"Unknown command {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
