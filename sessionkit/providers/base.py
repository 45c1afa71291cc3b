from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from sessionkit.core.sessions.abi import ContractFunction


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


@dataclass(frozen=True)
class CallRequest:
    """A read-only call: contract address, ABI fragment and arguments."""
    address: str
    function: "ContractFunction"
    args: Tuple[Any, ...] = field(default_factory=tuple)

    def encode(self) -> bytes:
        return self.function.encode_call(*self.args)


@dataclass(frozen=True)
class CallResult:
    """Outcome of one entry of a batched read. Order matches the request list."""
    success: bool
    result: Any = None
    error: Optional[str] = None


class ChainReader(Provider):
    """Read-only contract access for a single chain"""

    chain_id: int

    @abstractmethod
    async def call(self, request: CallRequest) -> Any:
        """Execute one read and return the decoded result. Raises on failure."""
        pass

    @abstractmethod
    async def multicall(self, requests: List[CallRequest]) -> List[CallResult]:
        """Execute many reads in one round trip; failures are reported per entry"""
        pass

    @abstractmethod
    async def get_storage_at(self, address: str, slot: str) -> bytes:
        """Read a raw 32-byte storage slot"""
        pass


class Signer(ABC):
    """Produces raw signatures over 32-byte digests"""

    @abstractmethod
    async def sign(self, digest: bytes) -> bytes:
        pass
