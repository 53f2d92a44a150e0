from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Sequence

from ..core.execution.calls import decode_uint256, encode_allowance_call
from ..core.execution.models import Call, Receipt, SubmissionHandle


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class PriceProvider(Provider):
    """Provider for USD reference prices"""

    @abstractmethod
    async def get_usd_prices(self, coin_ids: List[str]) -> Dict[str, Decimal]:
        """Get current USD prices keyed by coin id"""
        pass

    async def close(self) -> None:
        """Release network resources"""
        pass


class WalletProvider(ABC):
    """The connected wallet, treated as a capability-negotiated black box."""

    @abstractmethod
    async def has_atomic_batch_capability(self) -> bool:
        """Side-effect-free query: can this wallet apply several calls atomically?"""
        pass

    @abstractmethod
    async def submit_atomic(self, calls: Sequence[Call]) -> SubmissionHandle:
        """Submit all calls as one all-or-nothing unit."""
        pass

    @abstractmethod
    async def submit_single(self, call: Call) -> SubmissionHandle:
        """Submit one call as a plain transaction."""
        pass

    @abstractmethod
    async def wait_for_inclusion(self, handle: SubmissionHandle) -> Receipt:
        """Suspend until the submission is included (or reverted)."""
        pass


class ChainReader(ABC):
    """Read-only access to chain state."""

    @abstractmethod
    async def call(self, call: Call, block: str = "latest") -> str:
        """eth_call; returns the raw hex result"""
        pass

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        result = await self.call(encode_allowance_call(token, owner, spender))
        return decode_uint256(result)
