"""Tests for LedgerClient: sentinel translation and write confirmation."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from web3.constants import ADDRESS_ZERO
from web3.exceptions import ContractLogicError, TimeExhausted

from identity_gateway.config import Config
from identity_gateway.errors import (
    ConfigurationError,
    NetworkError,
    TransactionRejected,
    TransactionTimeout,
)
from identity_gateway.services.ledger import LedgerClient, is_valid_wallet

REGISTRAR = "0x1111111111111111111111111111111111111111"
WALLET = "0xabc0000000000000000000000000000000000001"
TX_HASH = bytes.fromhex("ab" * 32)


@pytest.fixture
def contract() -> MagicMock:
    contract = MagicMock()
    contract.functions.bindIdentity.return_value.estimate_gas.return_value = 100000
    contract.functions.recordDeath.return_value.estimate_gas.return_value = 200000
    return contract


@pytest.fixture
def w3() -> MagicMock:
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.gas_price = 1_000_000_000
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 4242}
    return w3


@pytest.fixture
def account() -> MagicMock:
    account = MagicMock()
    account.address = REGISTRAR
    account.sign_transaction.return_value = SimpleNamespace(raw_transaction=b"signed")
    return account


@pytest.fixture
def ledger(w3, contract, account) -> LedgerClient:
    return LedgerClient(w3, contract, account, chain_id=11155111, gas_limit=300000, tx_timeout=5)


def returns(contract, name, value):
    getattr(contract.functions, name).return_value.call.return_value = value


class TestReads:
    def test_unbound_nric_is_none(self, ledger, contract) -> None:
        returns(contract, "nricToWallet", ADDRESS_ZERO)
        assert ledger.get_wallet_for_nric("S1234567A") is None

    def test_bound_nric_returns_wallet(self, ledger, contract) -> None:
        returns(contract, "nricToWallet", WALLET)
        assert ledger.get_wallet_for_nric("S1234567A") == WALLET
        contract.functions.nricToWallet.assert_called_with("S1234567A")

    def test_free_wallet_is_none(self, ledger, contract) -> None:
        returns(contract, "walletToNric", "")
        assert ledger.get_nric_for_wallet(WALLET) is None

    def test_wallet_lookup_uses_checksum_address(self, ledger, contract) -> None:
        returns(contract, "walletToNric", "S1234567A")
        assert ledger.get_nric_for_wallet(WALLET) == "S1234567A"
        (address,) = contract.functions.walletToNric.call_args.args
        assert address.lower() == WALLET

    def test_authorization_and_death_flags(self, ledger, contract) -> None:
        returns(contract, "authorizedRegistrars", True)
        returns(contract, "isDeceased", False)
        assert ledger.is_authorized_registrar(REGISTRAR) is True
        assert ledger.is_deceased("S1234567A") is False

    def test_death_record(self, ledger, contract) -> None:
        returns(contract, "getTokenByNric", 3)
        returns(contract, "records", ["bafydeathcert", 1700000000])

        token_id = ledger.get_token_by_nric("S1234567A")
        record = ledger.get_death_record(token_id)

        assert token_id == 3
        assert record.metadata_cid == "bafydeathcert"
        assert record.timestamp == 1700000000
        contract.functions.records.assert_called_with(3)

    def test_reverted_read(self, ledger, contract) -> None:
        contract.functions.getTokenByNric.return_value.call.side_effect = ContractLogicError("execution reverted")
        with pytest.raises(TransactionRejected):
            ledger.get_token_by_nric("S1234567A")

    def test_network_failure_on_read(self, ledger, contract) -> None:
        contract.functions.nricToWallet.return_value.call.side_effect = requests.ConnectionError("down")
        with pytest.raises(NetworkError):
            ledger.get_wallet_for_nric("S1234567A")


class TestWrites:
    def test_bind_identity_confirmed(self, ledger, w3, contract, account) -> None:
        receipt = ledger.bind_identity("S1234567A", WALLET)

        assert receipt.transaction_hash == "0x" + "ab" * 32
        assert receipt.block_number == 4242
        tx_params = contract.functions.bindIdentity.return_value.build_transaction.call_args.args[0]
        assert tx_params["from"] == REGISTRAR
        assert tx_params["nonce"] == 7
        assert tx_params["chainId"] == 11155111
        w3.eth.send_raw_transaction.assert_called_once_with(b"signed")
        w3.eth.wait_for_transaction_receipt.assert_called_once_with(TX_HASH, timeout=5)

    def test_record_death_passes_cid(self, ledger, contract) -> None:
        ledger.record_death("S1234567A", "bafydeathcert")
        contract.functions.recordDeath.assert_called_once_with("S1234567A", "bafydeathcert")

    def test_reverted_receipt_is_rejected(self, ledger, w3) -> None:
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 4242}
        with pytest.raises(TransactionRejected):
            ledger.record_death("S1234567A", "bafydeathcert")

    def test_receipt_timeout(self, ledger, w3) -> None:
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        with pytest.raises(TransactionTimeout) as exc_info:
            ledger.bind_identity("S1234567A", WALLET)
        assert "ab" * 32 in exc_info.value.details

    def test_revert_while_building(self, ledger, contract, w3) -> None:
        contract.functions.bindIdentity.return_value.build_transaction.side_effect = ContractLogicError("already bound")
        with pytest.raises(TransactionRejected):
            ledger.bind_identity("S1234567A", WALLET)
        w3.eth.send_raw_transaction.assert_not_called()

    def test_send_failure_is_network_error(self, ledger, w3) -> None:
        w3.eth.send_raw_transaction.side_effect = requests.Timeout("rpc timeout")
        with pytest.raises(NetworkError):
            ledger.bind_identity("S1234567A", WALLET)

    def test_nonce_counts_pending_transactions(self, ledger, w3, contract) -> None:
        # One transaction is still waiting to be mined
        w3.eth.get_transaction_count.side_effect = lambda address, block="latest": 6 if block == "pending" else 5

        ledger.bind_identity("S1234567A", WALLET)

        tx_params = contract.functions.bindIdentity.return_value.build_transaction.call_args.args[0]
        assert tx_params["nonce"] == 6
        w3.eth.get_transaction_count.assert_called_once_with(REGISTRAR, "pending")

    def test_gas_is_estimated_with_buffer(self, ledger, contract) -> None:
        ledger.bind_identity("S1234567A", WALLET)

        contract.functions.bindIdentity.return_value.estimate_gas.assert_called_once_with({"from": REGISTRAR})
        tx_params = contract.functions.bindIdentity.return_value.build_transaction.call_args.args[0]
        assert tx_params["gas"] == 120000

    def test_gas_is_capped_at_limit(self, w3, contract, account) -> None:
        ledger = LedgerClient(w3, contract, account, chain_id=11155111, gas_limit=150000, tx_timeout=5)

        ledger.record_death("S1234567A", "bafydeathcert")

        tx_params = contract.functions.recordDeath.return_value.build_transaction.call_args.args[0]
        assert tx_params["gas"] == 150000

    def test_revert_during_estimation_sends_nothing(self, ledger, contract, w3) -> None:
        contract.functions.bindIdentity.return_value.estimate_gas.side_effect = ContractLogicError("already bound")

        with pytest.raises(TransactionRejected):
            ledger.bind_identity("S1234567A", WALLET)

        w3.eth.get_transaction_count.assert_not_called()
        w3.eth.send_raw_transaction.assert_not_called()

    def test_writes_are_not_retried(self, ledger, w3) -> None:
        w3.eth.send_raw_transaction.side_effect = requests.ConnectionError("down")
        with pytest.raises(NetworkError):
            ledger.record_death("S1234567A", "bafydeathcert")
        assert w3.eth.send_raw_transaction.call_count == 1


def test_registrar_address(ledger) -> None:
    assert ledger.registrar_address == REGISTRAR


def test_from_config_requires_settings() -> None:
    settings = Config(ETHEREUM_PROVIDER_URL="", WALLET_PRIVATE_KEY="", CONTRACT_ADDRESS="")
    with pytest.raises(ConfigurationError) as exc_info:
        LedgerClient.from_config(settings)
    assert "WALLET_PRIVATE_KEY" in exc_info.value.message


def test_missing_ledger_settings_lists_unset_names() -> None:
    settings = Config(ETHEREUM_PROVIDER_URL="http://localhost:8545", WALLET_PRIVATE_KEY="", CONTRACT_ADDRESS="")
    assert settings.missing_ledger_settings() == ["WALLET_PRIVATE_KEY", "CONTRACT_ADDRESS"]


def test_from_config_rejects_malformed_contract_address() -> None:
    settings = Config(
        ETHEREUM_PROVIDER_URL="http://localhost:8545",
        WALLET_PRIVATE_KEY="0x" + "11" * 32,
        CONTRACT_ADDRESS="not-an-address",
    )
    with pytest.raises(ConfigurationError) as exc_info:
        LedgerClient.from_config(settings)
    assert "CONTRACT_ADDRESS" in exc_info.value.message


def test_from_config_rejects_malformed_private_key() -> None:
    settings = Config(
        ETHEREUM_PROVIDER_URL="http://localhost:8545",
        WALLET_PRIVATE_KEY="0x1234",
        CONTRACT_ADDRESS=REGISTRAR,
    )
    with pytest.raises(ConfigurationError) as exc_info:
        LedgerClient.from_config(settings)
    assert exc_info.value.message == "Invalid WALLET_PRIVATE_KEY"
    assert "0x1234" not in exc_info.value.message


@pytest.mark.parametrize("wallet,expected", [
    (WALLET, True),
    (ADDRESS_ZERO, False),
    ("0x1234", False),
    ("", False),
    (None, False),
])
def test_is_valid_wallet(wallet, expected) -> None:
    assert is_valid_wallet(wallet) is expected
