"""
Interfaces for the remote ledger.

The pipeline only needs three capabilities from the contract that holds
the authoritative records: a read call, a paginated read call and a
gas-bounded mutating call.
"""
from abc import ABC, abstractmethod
from typing import Any, List, Mapping


class LedgerClientInterface(ABC):
    """Interface for ledger client implementations."""

    @abstractmethod
    def view(self, method: str, args: Mapping[str, Any]) -> Any:
        """
        Call a read-only contract method.

        Args:
            method: Contract method name
            args: Arguments keyed by parameter name

        Returns:
            Decoded result
        """
        pass

    @abstractmethod
    def read_page(self, method: str, from_index: int, limit: int) -> List[Any]:
        """
        Read one page of a paginated listing.

        Args:
            method: Contract method taking (from_index, limit)
            from_index: Index of the first entry
            limit: Maximum number of entries

        Returns:
            The page; empty once the listing is exhausted
        """
        pass

    @abstractmethod
    def mutate(self, method: str, args: Mapping[str, Any]) -> Any:
        """
        Submit a state-changing call with the fixed gas budget.

        Never retried here: the caller owns retry policy because a
        mutation is not known to be idempotent at the call level.

        Raises:
            TransportError: the call failed or was rejected
        """
        pass
