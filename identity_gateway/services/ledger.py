"""
NRIC Identity Gateway Ledger Service
Typed binding to the identity-registry contract over Ethereum JSON-RPC.

Reads return plain Python values with the contract's sentinels (zero address,
empty string) translated to ``None``. Writes are signed with the registrar
wallet and return only once the transaction receipt is available.
"""

import logging
import threading
from typing import Any, Callable, Optional

import requests
from eth_account import Account
from web3 import Web3
from web3.constants import ADDRESS_ZERO
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from identity_gateway.config import Config
from identity_gateway.errors import (
    ConfigurationError,
    NetworkError,
    TransactionRejected,
    TransactionTimeout,
)
from identity_gateway.models import DeathRecord, TransactionReceipt

logger = logging.getLogger(__name__)


# Identity registry ABI
REGISTRY_ABI = [
    {
        "inputs": [
            {"internalType": "string", "name": "nric", "type": "string"},
            {"internalType": "address", "name": "wallet", "type": "address"}
        ],
        "name": "bindIdentity",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "string", "name": "nric", "type": "string"},
            {"internalType": "string", "name": "metadataCID", "type": "string"}
        ],
        "name": "recordDeath",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "string", "name": "", "type": "string"}],
        "name": "nricToWallet",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "address", "name": "", "type": "address"}],
        "name": "walletToNric",
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "address", "name": "registrar", "type": "address"}],
        "name": "authorizeRegistrar",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "address", "name": "", "type": "address"}],
        "name": "authorizedRegistrars",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "string", "name": "nric", "type": "string"}],
        "name": "isDeceased",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "string", "name": "nric", "type": "string"}],
        "name": "getTokenByNric",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "name": "records",
        "outputs": [
            {"internalType": "string", "name": "metadataCID", "type": "string"},
            {"internalType": "uint256", "name": "timestamp", "type": "uint256"}
        ],
        "stateMutability": "view",
        "type": "function"
    }
]


def is_valid_wallet(wallet: Optional[str]) -> bool:
    """True for a well-formed, non-zero address."""
    if not wallet or not Web3.is_address(wallet):
        return False
    return wallet.lower() != ADDRESS_ZERO


class LedgerClient:
    """Client for the identity-registry contract."""

    def __init__(
        self,
        w3: Web3,
        contract: Any,
        account: Any,
        chain_id: int,
        gas_limit: int = 300000,
        tx_timeout: float = 120,
    ):
        self.w3 = w3
        self.contract = contract
        self.account = account
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.tx_timeout = tx_timeout
        self._send_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Config) -> "LedgerClient":
        """Connect to the configured RPC endpoint and contract."""
        missing = config.missing_ledger_settings()
        if missing:
            raise ConfigurationError(f"Missing one of: {', '.join(missing)}")

        w3 = Web3(Web3.HTTPProvider(
            config.ETHEREUM_PROVIDER_URL,
            request_kwargs={"timeout": config.RPC_TIMEOUT},
        ))
        try:
            contract_address = Web3.to_checksum_address(config.CONTRACT_ADDRESS)
        except ValueError as e:
            raise ConfigurationError(f"Invalid CONTRACT_ADDRESS: {e}") from e
        contract = w3.eth.contract(address=contract_address, abi=REGISTRY_ABI)

        try:
            account = Account.from_key(config.WALLET_PRIVATE_KEY)
        except ValueError as e:
            # The key itself never goes into the message
            raise ConfigurationError("Invalid WALLET_PRIVATE_KEY") from e
        logger.info(f"Ledger client ready for registrar {account.address}")
        return cls(
            w3,
            contract,
            account,
            chain_id=config.CHAIN_ID,
            gas_limit=config.GAS_LIMIT,
            tx_timeout=config.TX_TIMEOUT,
        )

    @property
    def registrar_address(self) -> str:
        """Address of the signing registrar wallet."""
        return self.account.address

    def is_connected(self) -> bool:
        """Check if connected to blockchain."""
        try:
            return self.w3.is_connected()
        except Exception:
            return False

    # ============ Reads ============

    def _call(self, name: str, *args) -> Any:
        try:
            return getattr(self.contract.functions, name)(*args).call()
        except ContractLogicError as e:
            raise TransactionRejected(f"{name} reverted", details=str(e)) from e
        except (Web3Exception, requests.RequestException) as e:
            raise NetworkError(f"{name} failed", details=str(e)) from e

    def get_wallet_for_nric(self, nric: str) -> Optional[str]:
        """Bound wallet for an NRIC, or None when unbound."""
        wallet = self._call("nricToWallet", nric)
        if not wallet or wallet.lower() == ADDRESS_ZERO:
            return None
        return wallet

    def get_nric_for_wallet(self, wallet: str) -> Optional[str]:
        """NRIC bound to a wallet, or None when the wallet is free."""
        nric = self._call("walletToNric", Web3.to_checksum_address(wallet))
        return nric or None

    def is_authorized_registrar(self, wallet: str) -> bool:
        return bool(self._call("authorizedRegistrars", Web3.to_checksum_address(wallet)))

    def is_deceased(self, nric: str) -> bool:
        return bool(self._call("isDeceased", nric))

    def get_token_by_nric(self, nric: str) -> int:
        return int(self._call("getTokenByNric", nric))

    def get_death_record(self, token_id: int) -> DeathRecord:
        metadata_cid, timestamp = self._call("records", token_id)
        return DeathRecord(metadata_cid=metadata_cid, timestamp=int(timestamp))

    # ============ Writes ============

    def _estimate_gas(self, function: Callable, from_address: str) -> int:
        """
        Estimate gas for a contract call.

        Returns:
            Estimated gas with 20% buffer, capped at the configured gas limit
        """
        estimated = function.estimate_gas({'from': from_address})
        return min(estimated * 6 // 5, self.gas_limit)

    def _send_transaction(self, function: Callable, label: str) -> TransactionReceipt:
        """
        Sign, send and wait for a contract transaction.

        Args:
            function: Bound contract function to call
            label: Name used in logs and errors

        Returns:
            TransactionReceipt once the transaction is in a block
        """
        address = self.account.address
        try:
            # Estimation surfaces reverts before anything is sent
            gas = self._estimate_gas(function, address)

            # Nonce allocation and send must not interleave across requests
            with self._send_lock:
                nonce = self.w3.eth.get_transaction_count(address, 'pending')
                tx = function.build_transaction({
                    'from': address,
                    'nonce': nonce,
                    'gas': gas,
                    'gasPrice': self.w3.eth.gas_price,
                    'chainId': self.chain_id
                })

                # Sign and send
                signed_tx = self.account.sign_transaction(tx)
                tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except ContractLogicError as e:
            raise TransactionRejected(f"{label} rejected", details=str(e)) from e
        except (Web3Exception, requests.RequestException) as e:
            raise NetworkError(f"{label} could not be sent", details=str(e)) from e

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"{label} sent: {tx_hex}")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.tx_timeout)
        except TimeExhausted as e:
            logger.error(f"{label} {tx_hex} not confirmed after {self.tx_timeout}s")
            raise TransactionTimeout(details=f"transaction {tx_hex} may still be mined") from e
        except (Web3Exception, requests.RequestException) as e:
            raise NetworkError(f"{label} receipt unavailable", details=str(e)) from e

        if receipt['status'] != 1:
            logger.error(f"{label} {tx_hex} reverted in block {receipt['blockNumber']}")
            raise TransactionRejected(f"{label} reverted", details=f"transaction {tx_hex}")

        logger.info(f"{label} confirmed: {tx_hex} in block {receipt['blockNumber']}")
        return TransactionReceipt(transaction_hash=tx_hex, block_number=receipt['blockNumber'])

    def bind_identity(self, nric: str, wallet: str) -> TransactionReceipt:
        function = self.contract.functions.bindIdentity(nric, Web3.to_checksum_address(wallet))
        return self._send_transaction(function, "bindIdentity")

    def record_death(self, nric: str, metadata_cid: str) -> TransactionReceipt:
        function = self.contract.functions.recordDeath(nric, metadata_cid)
        return self._send_transaction(function, "recordDeath")
