"""
Supplier Routes - Web API for Supplier Onboarding

POST /api/supplier accepts the wizard payload as JSON (no attachments) or
multipart (fields plus repeated "files" parts) and runs the orchestrator.
The metadata and OCR endpoints support the wizard's branding and fiscal
attestation pre-fill.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile as FormFile

from core.crm import CrmError, SalesforceConnection, get_crm_connection
from core.ocr import (
    AttestationExtractor,
    OcrConfigurationError,
    OcrError,
    OcrResponseError,
    build_attestation_extractor,
)
from core.supplier import IncomingFile, SupplierOrchestrator, sanitize_for_client
from core.supplier.sanitize import SUPPLIER_ERROR
from core.supplier.schema import FILES_FIELD_NAME, MAX_FILES_PER_SUBMISSION
from utils.config import get_config


logger = logging.getLogger(__name__)


LOGO_QUERY = "SELECT Logo__c, GroupName__c, DeveloperName FROM MetaRegisterForm__mdt LIMIT 1"

OCR_NO_FILE_MESSAGE = "No file uploaded"
OCR_CONFIG_MESSAGE = "Server configuration error: API Key missing"
OCR_FORMAT_MESSAGE = "Erreur lors de l'analyse du document (Format invalide)"
OCR_FAILURE_PREFIX = "Erreur lors de l'analyse OCR: "


class AttestationData(BaseModel):
    """Fields read from a fiscal attestation; null when not found."""

    numero_attestation: Optional[str] = None
    numero_d_identification_fiscale: Optional[str] = None
    ice: Optional[str] = None
    registre_de_commerce: Optional[str] = None
    taxe_professionnelle: Optional[str] = None
    date_reception: Optional[str] = None
    date_edition: Optional[str] = None
    statut_regularite: Optional[bool] = None
    statut_garanties: Optional[bool] = None
    nest_pas_en_regle: Optional[bool] = None


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/api", tags=["supplier"])


def get_supplier_orchestrator() -> SupplierOrchestrator:
    config = get_config()
    return SupplierOrchestrator(
        connection=get_crm_connection(),
        login_url=config.login_url,
        max_upload_bytes=config.max_upload_bytes,
        max_files=MAX_FILES_PER_SUBMISSION,
    )


def get_attestation_extractor() -> AttestationExtractor:
    config = get_config()
    return build_attestation_extractor(
        api_key=config.ocr_api_key,
        model=config.ocr_model,
        base_url=config.ocr_base_url,
        timeout_seconds=config.ocr_timeout_seconds,
    )


# =============================================================================
# Request Parsing
# =============================================================================


async def read_submission(request: Request) -> tuple[Optional[dict[str, Any]], list[IncomingFile]]:
    """
    Split a submission request into scalar payload and attachments.

    Returns:
        (payload or None when the body is missing or unreadable, files)
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        payload: dict[str, Any] = {}
        files: list[IncomingFile] = []
        for name, value in form.multi_items():
            if isinstance(value, FormFile):
                if name != FILES_FIELD_NAME:
                    continue
                files.append(IncomingFile(
                    filename=value.filename or "",
                    content=await value.read(),
                    content_type=value.content_type or "",
                ))
            else:
                payload[name] = value
        return payload, files

    try:
        body = await request.json()
    except ValueError:
        return None, []
    return (body if isinstance(body, dict) else None), []


# =============================================================================
# Supplier Submission
# =============================================================================


@router.post("/supplier")
async def create_supplier(
    request: Request,
    orchestrator: SupplierOrchestrator = Depends(get_supplier_orchestrator),
):
    """Create Account, Contact, attestation and documents for one supplier."""
    payload, files = await read_submission(request)
    logger.info(
        "Supplier submission received: %d field(s), %d file(s)",
        len(payload or {}),
        len(files),
    )

    try:
        result = await run_in_threadpool(orchestrator.submit, payload or {}, files)
    except Exception:
        logger.exception("Unexpected error during supplier submission")
        return JSONResponse(
            {"success": False, "error": SUPPLIER_ERROR, "warnings": []},
            status_code=500,
        )

    return JSONResponse(result.to_dict(), status_code=result.status_code)


# =============================================================================
# Branding Metadata
# =============================================================================


@router.get("/metadata/logo")
def metadata_logo(connection: SalesforceConnection = Depends(get_crm_connection)):
    """Logo and group name from the form's custom metadata record."""
    if not connection.is_authenticated:
        return JSONResponse(
            {
                "success": False,
                "error": "Not authenticated. Please log in first.",
                "loginUrl": get_config().login_url,
            },
            status_code=401,
        )

    try:
        records = connection.query(LOGO_QUERY)
    except CrmError as e:
        logger.error("Logo metadata query failed: %s", e)
        return JSONResponse(
            {"success": False, "error": sanitize_for_client(str(e))},
            status_code=500,
        )

    record = records[0] if records else {}
    return {
        "success": True,
        "logoUrl": record.get("Logo__c") or None,
        "logoName": record.get("GroupName__c") or None,
        "developerName": record.get("DeveloperName") or None,
    }


# =============================================================================
# Fiscal Attestation OCR
# =============================================================================


@router.post("/ocr/analyze", response_model=AttestationData)
async def analyze_attestation(
    file: Optional[UploadFile] = File(None),
    extractor: AttestationExtractor = Depends(get_attestation_extractor),
):
    """Extract the fiscal attestation fields from one scanned document."""
    if file is None:
        return JSONResponse({"error": OCR_NO_FILE_MESSAGE}, status_code=400)

    content = await file.read()
    mime_type = file.content_type or "application/octet-stream"
    try:
        data = await run_in_threadpool(extractor.analyze, content, mime_type)
    except OcrConfigurationError:
        logger.error("OCR API key is not configured")
        return JSONResponse({"error": OCR_CONFIG_MESSAGE}, status_code=500)
    except OcrResponseError as e:
        logger.error("Vision model reply could not be parsed: %s", e)
        return JSONResponse({"error": OCR_FORMAT_MESSAGE}, status_code=500)
    except OcrError as e:
        logger.error("OCR failed: %s", e)
        return JSONResponse(
            {"error": OCR_FAILURE_PREFIX + sanitize_for_client(str(e))},
            status_code=500,
        )

    logger.info("Attestation analysed: %s", json.dumps(data, ensure_ascii=False))
    return AttestationData(**data)
