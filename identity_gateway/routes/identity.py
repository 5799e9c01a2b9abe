"""
NRIC Identity Gateway Identity API
Binds NRICs to wallets, records deaths and looks up identity status.
"""

from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from identity_gateway.errors import ValidationError
from identity_gateway.routes.dependencies import get_workflow
from identity_gateway.routes.evidence import read_evidence
from identity_gateway.services.workflow import IdentityWorkflow


router = APIRouter()


class BindIdentityRequest(BaseModel):
    """Bind identity request model."""
    nric: Optional[str] = None
    wallet: Optional[str] = None


class BindIdentityResponse(BaseModel):
    message: str
    transactionHash: str
    blockNumber: int


class RecordDeathResponse(BaseModel):
    message: str
    metadataCID: str
    transactionHash: str
    blockNumber: int


class DeathRecordModel(BaseModel):
    metadataCID: str
    timestamp: str


class SearchResponse(BaseModel):
    """Identity status response model."""
    nric: str
    wallet: str
    isDeceased: bool
    tokenId: Optional[str] = None
    record: Optional[DeathRecordModel] = None
    tokenURI: Optional[str] = None


def _text(value) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    return None


async def read_death_request(request: Request) -> Tuple[Optional[str], Optional[str], Optional[UploadFile]]:
    """
    Accept either a JSON body or a multipart form.

    Returns:
        Tuple of (nric, metadata_cid, uploaded_file)
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            upload = None
        return _text(form.get("nric")), _text(form.get("metadataCID")), upload

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON or multipart form data")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return _text(body.get("nric")), _text(body.get("metadataCID")), None


@router.post("/bind-identity", response_model=BindIdentityResponse)
async def bind_identity(
    body: BindIdentityRequest,
    workflow: IdentityWorkflow = Depends(get_workflow),
):
    """Bind an NRIC to a wallet address (authorized registrars only)."""
    receipt = await run_in_threadpool(workflow.bind, body.nric, body.wallet)
    return BindIdentityResponse(
        message="Identity bound successfully",
        transactionHash=receipt.transaction_hash,
        blockNumber=receipt.block_number,
    )


@router.post("/record-death", response_model=RecordDeathResponse)
async def record_death(
    request: Request,
    workflow: IdentityWorkflow = Depends(get_workflow),
):
    """
    Record a death and mint the soul-bound attestation.

    Accepts JSON ``{nric, metadataCID}`` or multipart/form-data with
    ``nric``, optional ``metadataCID`` and optional ``file``.
    """
    nric, metadata_cid, upload = await read_death_request(request)
    evidence = await read_evidence(upload) if upload is not None else None

    result = await run_in_threadpool(workflow.record_death, nric, metadata_cid, evidence)
    return RecordDeathResponse(
        message="Death recorded and SBT minted",
        metadataCID=result.metadata_cid,
        transactionHash=result.receipt.transaction_hash,
        blockNumber=result.receipt.block_number,
    )


@router.get("/search-by-nric/{nric}", response_model=SearchResponse)
async def search_by_nric(nric: str, workflow: IdentityWorkflow = Depends(get_workflow)):
    """Get the binding and death status of an NRIC."""
    status = await run_in_threadpool(workflow.search, nric)
    return status.to_dict()
