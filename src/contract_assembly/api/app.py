"""FastAPI application for the contract assembly system.

Usage (from project root, after installing fastapi and uvicorn):

    uvicorn contract_assembly.api.app:app --reload

The pipeline is configured from CONTRACT_ASSEMBLY_* environment variables.
"""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..exceptions import DocumentReadError, IngestionPartialFailure, ProjectNotFound, TemplateNotFound
from ..models.assembly import AssembledContract
from ..pipeline import ContractPipeline, PipelineConfig


app = FastAPI(title="Contract Assembly API", version=__version__)


class PreviewRequest(BaseModel):
    contract_type: str
    project_id: Optional[int] = None
    values: Dict[str, Any] = Field(default_factory=dict)


class PackageRequest(BaseModel):
    contract_types: List[str]
    project_id: Optional[int] = None
    values: Dict[str, Any] = Field(default_factory=dict)


@lru_cache(maxsize=1)
def get_pipeline() -> ContractPipeline:
    """Shared pipeline built from the environment; overridable in tests."""
    return ContractPipeline(config=PipelineConfig.from_env())


def _contract_payload(contract: AssembledContract) -> Dict[str, Any]:
    return {
        "contract_type": contract.contract_type,
        "filename": contract.filename,
        "generated_at": contract.generated_at,
        "clause_count": contract.clause_count,
        "clause_ids": contract.clause_ids,
        "exhibit_letters": contract.exhibit_letters,
        "unresolved_placeholders": contract.unresolved_names,
        "content": contract.content,
    }


def _save_upload_to_temp(upload: UploadFile, temp_dir: Path) -> Path:
    """Save an uploaded file to a temporary directory and return its path."""
    suffix = Path(upload.filename or "").suffix or ""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=suffix, dir=temp_dir)
    try:
        temp_file.write(upload.file.read())
    finally:
        temp_file.close()
    return Path(temp_file.name)


@app.get("/api/health")
async def health(pipeline: ContractPipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    healthy = pipeline.db_manager.health_check()
    return {"status": "ok" if healthy else "degraded", "database": healthy, "version": __version__}


@app.post("/api/ingest/{contract_type}")
def ingest_document(
    contract_type: str,
    file: UploadFile = File(..., description="Source contract document (.docx)"),
    atomic: Optional[bool] = None,
    pipeline: ContractPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Replace the clause library of a contract type with an uploaded document."""
    temp_dir = Path(tempfile.gettempdir()) / "contract_assembly_api"
    temp_dir.mkdir(parents=True, exist_ok=True)
    path = _save_upload_to_temp(file, temp_dir)
    try:
        report = pipeline.ingest_file(path, contract_type.upper(), atomic=atomic)
    except DocumentReadError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except IngestionPartialFailure as exc:
        raise HTTPException(status_code=500, detail=exc.to_dict()) from exc
    finally:
        path.unlink(missing_ok=True)
    return JSONResponse(status_code=200, content=report.to_dict())


@app.get("/api/projects/{project_id}/pricing")
def project_pricing(project_id: int, pipeline: ContractPipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    try:
        summary = pipeline.calculate_pricing(project_id)
    except ProjectNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return summary.to_dict()


@app.post("/api/contracts/preview")
def preview_contract(request: PreviewRequest, pipeline: ContractPipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    try:
        contract = pipeline.preview(request.contract_type.upper(), request.project_id, request.values)
    except (TemplateNotFound, ProjectNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _contract_payload(contract)


@app.post("/api/contracts/package")
def generate_package(request: PackageRequest, pipeline: ContractPipeline = Depends(get_pipeline)) -> Dict[str, Any]:
    try:
        package = pipeline.generate_package(
            [t.upper() for t in request.contract_types], request.project_id, request.values
        )
    except ProjectNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        "success": package.success,
        "contracts": {t: _contract_payload(c) for t, c in package.contracts.items()},
        "errors": package.errors,
        "pricing": package.pricing.to_dict() if package.pricing else None,
    }
