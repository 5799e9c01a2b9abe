"""
NRIC Identity Gateway IPFS Service
Evidence store backed by Pinata for IPFS pinning.

Implements:
- Media type and size checks before any network call
- Local staging of the upload with guaranteed cleanup
- File pinning to IPFS (CIDv1)
"""

import hashlib
import json
import logging
import os
import re
import tempfile
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

import httpx

from identity_gateway.config import Config
from identity_gateway.errors import (
    InvalidEvidence,
    InvalidMediaType,
    StagingIOError,
    StorageUnavailable,
)
from identity_gateway.models import ALLOWED_MEDIA_TYPES, EvidenceBlob, UploadResult

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


def _discard(path: str) -> bool:
    """Remove a staged file; True when it is gone."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.error(f"Could not delete staged file {path}: {e}")
        return False
    return True


@contextmanager
def staged_file(blob: EvidenceBlob, staging_dir: str) -> Iterator[str]:
    """
    Write a blob to a temporary file and delete it on exit.

    Yields:
        Path of the staged copy
    """
    safe_name = _UNSAFE_FILENAME.sub("_", os.path.basename(blob.filename or "evidence"))
    try:
        fd, path = tempfile.mkstemp(
            prefix=f"upload-{int(time.time() * 1000)}-",
            suffix=f"-{safe_name}",
            dir=staging_dir,
        )
    except OSError as e:
        raise StagingIOError(details=str(e)) from e

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(blob.data)
    except OSError as e:
        _discard(path)
        raise StagingIOError(details=str(e)) from e

    try:
        yield path
    finally:
        removed = _discard(path)
    if not removed:
        raise StagingIOError("Failed to delete staged evidence file")


class EvidenceStore:
    """
    Content-addressed evidence store using Pinata.

    Every call stages the blob locally and produces a fresh upload; identical
    content maps to the same CID at the store layer.
    """

    PINATA_PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"

    def __init__(
        self,
        pinata_api_key: str = "",
        pinata_secret_key: str = "",
        pinata_jwt: str = "",
        gateway_url: str = "https://gateway.pinata.cloud/ipfs",
        staging_dir: Optional[str] = None,
        max_file_size: int = 10 * 1024 * 1024,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the store with Pinata credentials.

        Args:
            pinata_api_key: Pinata API key
            pinata_secret_key: Pinata secret key
            pinata_jwt: Pinata JWT (alternative to API key pair)
            client: Preconfigured HTTP client, mostly for tests
        """
        self.api_key = pinata_api_key
        self.secret_key = pinata_secret_key
        self.jwt = pinata_jwt
        self.gateway = gateway_url.rstrip("/")
        self.staging_dir = staging_dir or tempfile.gettempdir()
        self.max_file_size = max_file_size

        # HTTP client with connection pooling
        self.client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, config: Config) -> "EvidenceStore":
        return cls(
            pinata_api_key=config.PINATA_API_KEY,
            pinata_secret_key=config.PINATA_SECRET_KEY,
            pinata_jwt=config.PINATA_JWT,
            gateway_url=config.IPFS_GATEWAY,
            staging_dir=config.STAGING_DIR,
            max_file_size=config.MAX_FILE_SIZE,
            timeout=config.IPFS_TIMEOUT,
        )

    def _build_headers(self) -> Dict[str, str]:
        """Build authentication headers for Pinata API."""
        if self.jwt:
            return {"Authorization": f"Bearer {self.jwt}"}
        elif self.api_key and self.secret_key:
            return {
                "pinata_api_key": self.api_key,
                "pinata_secret_api_key": self.secret_key,
            }
        return {}

    def is_configured(self) -> bool:
        return bool(self.jwt or (self.api_key and self.secret_key))

    def validate(self, blob: EvidenceBlob) -> None:
        """Reject blobs that must never reach the network."""
        if blob.mime_type not in ALLOWED_MEDIA_TYPES:
            raise InvalidMediaType(blob.mime_type)
        if blob.size_bytes == 0:
            raise InvalidEvidence(f"File {blob.filename} is empty")
        if blob.size_bytes > self.max_file_size:
            raise InvalidEvidence(
                f"File {blob.filename} exceeds maximum size of "
                f"{self.max_file_size // (1024 * 1024)}MB"
            )

    def upload(self, blob: EvidenceBlob) -> UploadResult:
        """
        Upload an evidence blob to IPFS.

        Args:
            blob: Validated evidence document

        Returns:
            UploadResult with the CID of the pinned content
        """
        self.validate(blob)
        with staged_file(blob, self.staging_dir) as path:
            cid = self._submit(path, blob)

        logger.info(f"Uploaded {blob.filename} ({blob.size_bytes} bytes) as {cid}")
        return UploadResult(
            cid=cid,
            size_bytes=blob.size_bytes,
            sha256=hashlib.sha256(blob.data).hexdigest(),
        )

    def _submit(self, path: str, blob: EvidenceBlob) -> str:
        """Pin a staged file and return its CID."""
        if not self.is_configured():
            raise StorageUnavailable("IPFS service not configured")

        try:
            with open(path, "rb") as handle:
                response = self.client.post(
                    self.PINATA_PIN_FILE_URL,
                    headers=self._build_headers(),
                    files={"file": (os.path.basename(blob.filename or path), handle, blob.mime_type)},
                    data={
                        "pinataOptions": json.dumps({"cidVersion": 1}),
                        "pinataMetadata": json.dumps({"name": blob.filename or "evidence"}),
                    },
                )
        except OSError as e:
            raise StagingIOError(details=str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Pinata request failed: {e}")
            raise StorageUnavailable(details=str(e)) from e

        if response.status_code != 200:
            error_msg = response.text
            try:
                error_msg = response.json().get("error", {}).get("message", error_msg)
            except (ValueError, AttributeError):
                pass
            logger.error(f"Pinata rejected upload: {response.status_code} {error_msg}")
            raise StorageUnavailable(details=f"Pinata error: {error_msg}")

        try:
            cid = response.json().get("IpfsHash", "")
        except (ValueError, AttributeError):
            cid = ""
        if not cid:
            raise StorageUnavailable(details="Pinata response did not include a CID")
        return cid

    def gateway_url(self, cid: str) -> str:
        """Get gateway URL for a CID."""
        return f"{self.gateway}/{cid}"

    def close(self):
        """Close HTTP client."""
        self.client.close()
