"""
NRIC Identity Gateway Workflow Engine
Ordered authorization, uniqueness and state checks in front of every ledger
write, and the read pipeline that reconstructs an identity's status.

The read-then-write checks fail fast on known conflicts; they do not lock
anything. Concurrent binds for the same NRIC or wallet can both pass the
checks, and the registry contract decides which write lands.
"""

import logging
from typing import Optional

from identity_gateway.errors import (
    AlreadyBound,
    InvalidWallet,
    MissingEvidence,
    MissingFields,
    MissingNric,
    NotAuthorized,
    NricNotRegistered,
    UpstreamError,
    WalletAlreadyBound,
)
from identity_gateway.models import (
    DeathRecordResult,
    EvidenceBlob,
    IdentityStatus,
    TransactionReceipt,
    UploadResult,
)
from identity_gateway.services.ipfs import EvidenceStore
from identity_gateway.services.ledger import LedgerClient, is_valid_wallet

logger = logging.getLogger(__name__)


def normalize_nric(nric: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace; a blank NRIC becomes None."""
    if nric is None:
        return None
    return nric.strip() or None


class IdentityWorkflow:
    """
    Identity workflow over a ledger client and an evidence store.

    Both collaborators are passed in explicitly; the engine keeps no state of
    its own between calls.
    """

    def __init__(self, ledger: LedgerClient, evidence_store: EvidenceStore):
        self.ledger = ledger
        self.evidence_store = evidence_store

    def _require_registrar(self) -> None:
        # Re-read on every write; authorization can be revoked between calls
        registrar = self.ledger.registrar_address
        if not self.ledger.is_authorized_registrar(registrar):
            logger.warning(f"Registrar {registrar} is not authorized")
            raise NotAuthorized(registrar)

    def upload_evidence(self, blob: EvidenceBlob) -> UploadResult:
        return self.evidence_store.upload(blob)

    def bind(self, nric: Optional[str], wallet: Optional[str]) -> TransactionReceipt:
        """
        Bind an NRIC to a wallet.

        Args:
            nric: Identity number to bind
            wallet: Wallet address to bind it to

        Returns:
            Receipt of the confirmed bindIdentity transaction
        """
        nric = normalize_nric(nric)
        if not nric or not wallet:
            raise MissingFields()
        if not is_valid_wallet(wallet):
            raise InvalidWallet(wallet)

        existing_wallet = self.ledger.get_wallet_for_nric(nric)
        if existing_wallet is not None:
            logger.warning(f"NRIC {nric} already bound to {existing_wallet}")
            raise AlreadyBound(existing_wallet)

        existing_nric = self.ledger.get_nric_for_wallet(wallet)
        if existing_nric is not None:
            logger.warning(f"Wallet {wallet} already bound to another NRIC")
            raise WalletAlreadyBound(existing_nric)

        self._require_registrar()

        receipt = self.ledger.bind_identity(nric, wallet)
        logger.info(f"Bound NRIC {nric} to {wallet} in tx {receipt.transaction_hash}")
        return receipt

    def record_death(
        self,
        nric: Optional[str],
        metadata_cid: Optional[str] = None,
        evidence: Optional[EvidenceBlob] = None,
    ) -> DeathRecordResult:
        """
        Record a death against a bound NRIC and mint its attestation.

        Authorization and registration are checked before the evidence is
        uploaded, so a rejected request never pays for an upload. The engine
        does not check whether the NRIC is already deceased; the contract
        enforces that, if at all.

        Args:
            nric: Identity number of the deceased
            metadata_cid: CID of evidence already in the store
            evidence: Evidence document to upload when no CID is given
        """
        nric = normalize_nric(nric)
        if not nric:
            raise MissingNric()
        if not metadata_cid:
            if evidence is None:
                raise MissingEvidence()
            self.evidence_store.validate(evidence)

        self._require_registrar()

        if self.ledger.get_wallet_for_nric(nric) is None:
            raise NricNotRegistered(nric)

        uploaded = False
        if not metadata_cid:
            metadata_cid = self.evidence_store.upload(evidence).cid
            uploaded = True

        try:
            receipt = self.ledger.record_death(nric, metadata_cid)
        except UpstreamError as e:
            if uploaded:
                # The blob stays in the store, unreferenced
                logger.error(f"recordDeath for {nric} failed; evidence {metadata_cid} is orphaned")
                e.orphaned_cid = metadata_cid
            raise

        logger.info(f"Recorded death for {nric} with {metadata_cid} in tx {receipt.transaction_hash}")
        return DeathRecordResult(receipt=receipt, metadata_cid=metadata_cid)

    def search(self, nric: str) -> IdentityStatus:
        """Reconstruct the status of an NRIC from the ledger."""
        nric = normalize_nric(nric)
        if not nric:
            raise MissingNric()

        wallet = self.ledger.get_wallet_for_nric(nric)
        if wallet is None:
            raise NricNotRegistered(nric)

        if not self.ledger.is_deceased(nric):
            return IdentityStatus(nric=nric, wallet=wallet, is_deceased=False)

        token_id = self.ledger.get_token_by_nric(nric)
        record = self.ledger.get_death_record(token_id)
        return IdentityStatus(
            nric=nric,
            wallet=wallet,
            is_deceased=True,
            token_id=token_id,
            record=record,
            token_uri=f"ipfs://{record.metadata_cid}",
        )
