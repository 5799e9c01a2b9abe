"""
NRIC Identity Gateway

Registrar gateway for an on-chain identity registry:
- Binds NRICs to wallet addresses through an Ethereum contract
- Records deaths as soul-bound tokens backed by IPFS evidence
- Looks up the current status of an NRIC
- No local database; the ledger is the source of truth

Version: 1.0.0
"""

__version__ = "1.0.0"
