import hashlib
import os

import pytest
from fastapi.testclient import TestClient

from identity_gateway.main import create_app
from identity_gateway.models import DeathRecord, EvidenceBlob, TransactionReceipt
from identity_gateway.services.ipfs import EvidenceStore
from identity_gateway.services.workflow import IdentityWorkflow


REGISTRAR = "0x1111111111111111111111111111111111111111"
WALLET_A = "0xabc0000000000000000000000000000000000001"
WALLET_B = "0xdef0000000000000000000000000000000000002"
NRIC = "S1234567A"


class FakeLedger:
    """In-memory stand-in for the identity-registry contract."""

    def __init__(self, registrar: str = REGISTRAR, authorized: bool = True):
        self.registrar_address = registrar
        self.authorized = {registrar.lower(): authorized}
        self.nric_to_wallet = {}
        self.wallet_to_nric = {}
        self.tokens = {}
        self.records = {}
        self.reads = []
        self.writes = []
        self.fail_writes_with = None
        self.block_number = 100

    def _read(self, name):
        self.reads.append(name)

    def is_connected(self):
        return True

    def get_wallet_for_nric(self, nric):
        self._read("nricToWallet")
        return self.nric_to_wallet.get(nric)

    def get_nric_for_wallet(self, wallet):
        self._read("walletToNric")
        return self.wallet_to_nric.get(wallet.lower())

    def is_authorized_registrar(self, wallet):
        self._read("authorizedRegistrars")
        return self.authorized.get(wallet.lower(), False)

    def is_deceased(self, nric):
        self._read("isDeceased")
        return nric in self.tokens

    def get_token_by_nric(self, nric):
        self._read("getTokenByNric")
        return self.tokens[nric]

    def get_death_record(self, token_id):
        self._read("records")
        return self.records[token_id]

    def _confirm(self, *write):
        if self.fail_writes_with is not None:
            raise self.fail_writes_with
        self.writes.append(write)
        self.block_number += 1
        return TransactionReceipt(
            transaction_hash="0x" + format(len(self.writes), "064x"),
            block_number=self.block_number,
        )

    def bind_identity(self, nric, wallet):
        receipt = self._confirm("bindIdentity", nric, wallet)
        self.nric_to_wallet[nric] = wallet
        self.wallet_to_nric[wallet.lower()] = nric
        return receipt

    def record_death(self, nric, metadata_cid):
        receipt = self._confirm("recordDeath", nric, metadata_cid)
        token_id = len(self.records) + 1
        self.tokens[nric] = token_id
        self.records[token_id] = DeathRecord(metadata_cid=metadata_cid, timestamp=1700000000 + token_id)
        return receipt


class FakeEvidenceStore(EvidenceStore):
    """Evidence store that stages files for real but never calls Pinata."""

    def __init__(self, staging_dir):
        super().__init__(pinata_jwt="test-jwt", staging_dir=str(staging_dir))
        self.submitted = []

    def _submit(self, path, blob):
        with open(path, "rb") as handle:
            staged = handle.read()
        assert staged == blob.data
        self.submitted.append((os.path.basename(path), blob.mime_type))
        return "bafy" + hashlib.sha256(staged).hexdigest()[:40]


def make_blob(mime_type="application/pdf", data=b"%PDF-1.4 death certificate", filename="certificate.pdf"):
    return EvidenceBlob(filename=filename, mime_type=mime_type, data=data)


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def evidence_store(tmp_path) -> FakeEvidenceStore:
    return FakeEvidenceStore(tmp_path)


@pytest.fixture
def workflow(ledger, evidence_store) -> IdentityWorkflow:
    return IdentityWorkflow(ledger=ledger, evidence_store=evidence_store)


@pytest.fixture
def client(workflow) -> TestClient:
    return TestClient(create_app(workflow=workflow))
