# migrator/clients/ledger_rpc.py

import json
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError

from ..core.errors import ConfigError, TransportError
from ..core.logging import LoggingMixin
from ..types import LedgerConfig
from .interfaces import LedgerClientInterface


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# internalType prefix of a component sent as a 0/1-length array; empty means absent
OPTIONAL_MARKER = "optional "


def zero_value(abi_type: str) -> Any:
    """Zero value sent for an absent non-optional component"""
    if abi_type.startswith(("uint", "int")):
        return 0
    if abi_type == "bool":
        return False
    if abi_type == "string":
        return ""
    if abi_type == "address":
        return ZERO_ADDRESS
    if abi_type.startswith("bytes"):
        return b""
    raise ValueError(f"No zero value for ABI type {abi_type}")


def optional_element(param: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """ABI of the wrapped value when ``param`` is an optional component, else None"""
    internal_type = param.get("internalType") or ""
    if not internal_type.startswith(OPTIONAL_MARKER):
        return None
    element = {key: value for key, value in param.items() if key != "internalType"}
    element["type"] = internal_type[len(OPTIONAL_MARKER):]
    return element


def encode_value(param: Mapping[str, Any], value: Any) -> Any:
    abi_type = param["type"]

    element = optional_element(param)
    if element is not None:
        return [] if value is None else [encode_value(element, value)]

    if abi_type.endswith("]"):
        element = {**param, "type": abi_type[:abi_type.rindex("[")]}
        return [encode_value(element, item) for item in (value or [])]

    if abi_type == "tuple":
        components = param.get("components", [])
        if value is None:
            value = {}
        if isinstance(value, Mapping):
            return tuple(encode_value(c, value.get(c["name"])) for c in components)
        return tuple(encode_value(c, item) for c, item in zip(components, value))

    if value is None:
        return zero_value(abi_type)

    # 64-bit ledger timestamps travel as decimal strings
    if abi_type.startswith(("uint", "int")) and isinstance(value, str):
        return int(value)

    return value


def decode_value(param: Mapping[str, Any], value: Any) -> Any:
    abi_type = param["type"]

    element = optional_element(param)
    if element is not None:
        return decode_value(element, value[0]) if value else None

    if abi_type.endswith("]"):
        element = {**param, "type": abi_type[:abi_type.rindex("[")]}
        return [decode_value(element, item) for item in value]

    if abi_type == "tuple":
        components = param.get("components", [])
        return {
            (c.get("name") or str(position)): decode_value(c, item)
            for position, (c, item) in enumerate(zip(components, value))
        }

    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()

    return value


class Web3LedgerClient(LedgerClientInterface, LoggingMixin):
    """
    Ledger client for an EVM contract reached over JSON-RPC.

    Reads are retried with exponential backoff. Writes are signed with the
    configured account, sent with a fixed gas limit and never retried.
    """

    def __init__(self, config: LedgerConfig, abi: List[Dict[str, Any]],
                 w3: Optional[Web3] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self._sleep = sleep
        self._account: Optional[LocalAccount] = None

        if w3 is None:
            w3 = Web3(Web3.HTTPProvider(config.endpoint_url,
                                        request_kwargs={"timeout": config.timeout}))
            if not w3.is_connected():
                raise TransportError("Failed to connect to ledger RPC endpoint",
                                     endpoint=config.endpoint_url)
        self.w3 = w3

        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(config.contract_address),
            abi=abi,
        )
        self._functions = {
            item["name"]: item for item in abi if item.get("type") == "function"
        }

        self.log_info("Ledger client initialized",
                      network=config.network,
                      contract_address=config.contract_address)

    def _function_abi(self, method: str) -> Dict[str, Any]:
        try:
            return self._functions[method]
        except KeyError:
            raise ConfigError(f"Contract ABI has no function '{method}'") from None

    def _encode_args(self, method: str, args: Mapping[str, Any]) -> List[Any]:
        fn_abi = self._function_abi(method)
        encoded = []
        for param in fn_abi.get("inputs", []):
            if param["name"] not in args:
                raise ValueError(f"Missing argument '{param['name']}' for {method}")
            encoded.append(encode_value(param, args[param["name"]]))
        return encoded

    def _decode_result(self, method: str, result: Any) -> Any:
        outputs = self._function_abi(method).get("outputs", [])
        if len(outputs) == 1:
            return decode_value(outputs[0], result)
        return [decode_value(param, item) for param, item in zip(outputs, result)]

    def _contract_function(self, method: str, call_args: List[Any]):
        return self.contract.get_function_by_name(method)(*call_args)

    def view(self, method: str, args: Mapping[str, Any]) -> Any:
        call_args = self._encode_args(method, args)
        attempts = max(1, self.config.max_retries)

        for attempt in range(1, attempts + 1):
            try:
                raw = self._contract_function(method, call_args).call()
                return self._decode_result(method, raw)
            except ContractLogicError as e:
                raise TransportError("Ledger read rejected by contract",
                                     method=method, error=str(e)) from e
            except Exception as e:
                self.log_warning("Ledger read failed",
                                 method=method, attempt=attempt, error=str(e))
                if attempt == attempts:
                    raise TransportError("Ledger read failed",
                                         method=method, attempts=attempts, error=str(e)) from e
                self._sleep(self.config.retry_backoff * (2 ** (attempt - 1)))

    def read_page(self, method: str, from_index: int, limit: int) -> List[Any]:
        return list(self.view(method, {"from_index": from_index, "limit": limit}) or [])

    def mutate(self, method: str, args: Mapping[str, Any]) -> Dict[str, Any]:
        account = self._get_account()
        call_args = self._encode_args(method, args)

        try:
            transaction = self._contract_function(method, call_args).build_transaction({
                "from": account.address,
                "nonce": self.w3.eth.get_transaction_count(account.address, "pending"),
                "gas": self.config.gas_limit,
            })
            signed = account.sign_transaction(transaction)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.config.timeout)
        except Exception as e:
            raise TransportError("Ledger call failed", method=method, error=str(e)) from e

        if receipt["status"] != 1:
            raise TransportError("Ledger call reverted", method=method,
                                 tx_hash=tx_hash.hex(), gas_used=receipt.get("gasUsed"))

        self.log_debug("Ledger call confirmed", method=method,
                       tx_hash=tx_hash.hex(), gas_used=receipt.get("gasUsed"))
        return dict(receipt)

    def _get_account(self) -> LocalAccount:
        if self._account is not None:
            return self._account

        credentials = self.config.credentials
        if credentials.private_key:
            self._account = Account.from_key(credentials.private_key)
        elif credentials.keystore_path:
            try:
                with open(credentials.keystore_path, 'r') as f:
                    keyfile = json.load(f)
                private_key = Account.decrypt(keyfile, credentials.keystore_password or "")
            except (OSError, ValueError) as e:
                raise ConfigError("Unable to unlock keystore",
                                  {"keystore_path": str(credentials.keystore_path), "error": str(e)}) from e
            self._account = Account.from_key(private_key)
        else:
            raise ConfigError("Signing credentials required for ledger writes: "
                              "set MIGRATOR_PRIVATE_KEY or MIGRATOR_KEYSTORE_PATH")

        self.log_info("Signing account loaded", account=self._account.address)
        return self._account
