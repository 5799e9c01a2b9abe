"""
NRIC Identity Gateway Evidence API
Uploads death evidence documents to IPFS.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from identity_gateway.errors import MissingFile
from identity_gateway.models import EvidenceBlob
from identity_gateway.routes.dependencies import get_workflow
from identity_gateway.services.workflow import IdentityWorkflow


router = APIRouter()


class UploadResponse(BaseModel):
    """Evidence upload response model."""
    cid: str
    gatewayUrl: str


async def read_evidence(file: UploadFile) -> EvidenceBlob:
    """Read an uploaded file into an evidence blob."""
    content = await file.read()
    return EvidenceBlob(
        filename=file.filename or "evidence",
        mime_type=file.content_type or "",
        data=content,
    )


@router.post("/upload", response_model=UploadResponse)
async def upload_evidence(
    file: Optional[UploadFile] = File(None, description="Evidence document (PDF, JPEG, PNG or JSON, max 10MB)"),
    workflow: IdentityWorkflow = Depends(get_workflow),
):
    """Pin an evidence document to IPFS and return its CID."""
    if file is None:
        raise MissingFile()

    blob = await read_evidence(file)
    result = await run_in_threadpool(workflow.upload_evidence, blob)
    return UploadResponse(
        cid=result.cid,
        gatewayUrl=workflow.evidence_store.gateway_url(result.cid),
    )
