"""
NRIC Identity Gateway Domain Types
Plain dataclasses passed between the workflow engine and its clients.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


# Media types accepted as death evidence
ALLOWED_MEDIA_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "application/json",
}


@dataclass
class EvidenceBlob:
    """An uploaded evidence document, alive only for one request."""
    filename: str
    mime_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class UploadResult:
    """Result of storing an evidence blob."""
    cid: str
    size_bytes: int
    sha256: str


@dataclass
class TransactionReceipt:
    """A confirmed ledger write."""
    transaction_hash: str
    block_number: int


@dataclass
class DeathRecord:
    """On-chain death attestation."""
    metadata_cid: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        # uint256 values are rendered as decimal strings
        return {"metadataCID": self.metadata_cid, "timestamp": str(self.timestamp)}


@dataclass
class DeathRecordResult:
    receipt: TransactionReceipt
    metadata_cid: str


@dataclass
class IdentityStatus:
    """Current status of an NRIC as reconstructed from the ledger."""
    nric: str
    wallet: str
    is_deceased: bool
    token_id: Optional[int] = None
    record: Optional[DeathRecord] = None
    token_uri: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nric": self.nric,
            "wallet": self.wallet,
            "isDeceased": self.is_deceased,
            "tokenId": str(self.token_id) if self.token_id is not None else None,
            "record": self.record.to_dict() if self.record else None,
            "tokenURI": self.token_uri,
        }
