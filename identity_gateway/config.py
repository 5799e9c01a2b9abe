"""
NRIC Identity Gateway Configuration Module
Loads environment variables and provides configuration settings for the
registrar gateway backed by IPFS and an Ethereum identity-registry contract.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


@dataclass
class Config:
    """Application configuration settings."""

    # ============ API Settings ============
    API_HOST: str = field(default_factory=lambda: _env("API_HOST", "0.0.0.0"))
    API_PORT: int = field(default_factory=lambda: int(_env("API_PORT", "3000")))
    API_LOG_LEVEL: str = field(default_factory=lambda: _env("API_LOG_LEVEL", "info"))

    # ============ Blockchain (identity registry) ============
    ETHEREUM_PROVIDER_URL: str = field(default_factory=lambda: _env("ETHEREUM_PROVIDER_URL"))
    CONTRACT_ADDRESS: str = field(default_factory=lambda: _env("CONTRACT_ADDRESS"))

    # Registrar signing wallet
    WALLET_PRIVATE_KEY: str = field(default_factory=lambda: _env("WALLET_PRIVATE_KEY"))

    # Chain settings
    CHAIN_ID: int = field(default_factory=lambda: int(_env("CHAIN_ID", "11155111")))  # Sepolia
    GAS_LIMIT: int = field(default_factory=lambda: int(_env("GAS_LIMIT", "300000")))
    RPC_TIMEOUT: float = field(default_factory=lambda: float(_env("RPC_TIMEOUT", "30")))
    # Seconds to wait for a write to be included in a block
    TX_TIMEOUT: float = field(default_factory=lambda: float(_env("TX_TIMEOUT", "120")))

    # ============ IPFS (Pinata) ============
    PINATA_API_KEY: str = field(default_factory=lambda: _env("PINATA_API_KEY"))
    PINATA_SECRET_KEY: str = field(default_factory=lambda: _env("PINATA_SECRET_KEY"))
    PINATA_JWT: str = field(default_factory=lambda: _env("PINATA_JWT"))  # Alternative to API key pair

    IPFS_GATEWAY: str = field(
        default_factory=lambda: _env("IPFS_GATEWAY", "https://gateway.pinata.cloud/ipfs")
    )
    IPFS_TIMEOUT: float = field(default_factory=lambda: float(_env("IPFS_TIMEOUT", "60")))

    # ============ File Upload Settings ============
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    STAGING_DIR: str = field(default_factory=lambda: _env("STAGING_DIR", tempfile.gettempdir()))

    def missing_ledger_settings(self) -> List[str]:
        """Names of the ledger settings that are not set."""
        required = {
            "ETHEREUM_PROVIDER_URL": self.ETHEREUM_PROVIDER_URL,
            "WALLET_PRIVATE_KEY": self.WALLET_PRIVATE_KEY,
            "CONTRACT_ADDRESS": self.CONTRACT_ADDRESS,
        }
        return [name for name, value in required.items() if not value]

    def is_ipfs_configured(self) -> bool:
        """Check if IPFS is properly configured."""
        return bool(
            self.PINATA_JWT or
            (self.PINATA_API_KEY and self.PINATA_SECRET_KEY)
        )


# Global config instance
config = Config()
