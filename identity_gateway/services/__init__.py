"""
NRIC Identity Gateway Services Package
Provides the ledger client, the IPFS evidence store and the identity workflow.
"""

from identity_gateway.services.ipfs import EvidenceStore
from identity_gateway.services.ledger import LedgerClient
from identity_gateway.services.workflow import IdentityWorkflow

__all__ = [
    'EvidenceStore',
    'LedgerClient',
    'IdentityWorkflow',
]
