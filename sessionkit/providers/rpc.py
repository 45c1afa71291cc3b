"""
JSON-RPC chain reader.

Single reads are plain ``eth_call``s; batches go through Multicall3
``aggregate3`` with ``allowFailure`` set on every entry, so one reverting call
comes back as a failed entry instead of failing the batch.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog
from eth_abi.exceptions import DecodingError
from eth_utils import to_bytes, to_checksum_address

from .base import CallRequest, CallResult, ChainReader
from ..config import settings
from ..core.sessions.abi import Multicall3Abi
from ..core.sessions.errors import MissingClientForChain

logger = structlog.stdlib.get_logger("rpc")


class RpcError(Exception):
    """JSON-RPC transport or node error."""
    pass


def _hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


class JsonRpcChainReader(ChainReader):
    name = "jsonrpc"

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        timeout_s: Optional[float] = None,
        multicall3_address: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.chain_id = int(chain_id)
        self.rpc_url = rpc_url
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self.multicall3_address = to_checksum_address(
            multicall3_address or settings.multicall3_address
        )
        self._client = client
        self._request_id = 0

    @classmethod
    def for_chain(cls, chain_id: int) -> "JsonRpcChainReader":
        """Reader for a chain configured in ``settings.rpc_urls``."""
        rpc_url = settings.rpc_url_for(chain_id)
        if not rpc_url:
            raise MissingClientForChain(chain_id)
        return cls(chain_id=chain_id, rpc_url=rpc_url)

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "RPC URL not configured"}

        try:
            result = await self._rpc_call("eth_chainId", [])
            remote_chain_id = int(result, 16)
            if remote_chain_id != self.chain_id:
                return {
                    "status": "error",
                    "reason": f"RPC serves chain {remote_chain_id}, expected {self.chain_id}",
                }
            return {"status": "healthy", "chainId": remote_chain_id}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def call(self, request: CallRequest) -> Any:
        raw = await self._eth_call(request.address, request.encode())
        return request.function.decode_output(raw)

    async def multicall(self, requests: List[CallRequest]) -> List[CallResult]:
        if not requests:
            return []

        calls = [
            (to_checksum_address(request.address), True, request.encode())
            for request in requests
        ]
        raw = await self._eth_call(
            self.multicall3_address,
            Multicall3Abi.aggregate3.encode_call(calls),
        )
        entries = Multicall3Abi.aggregate3.decode_output(raw)

        results: List[CallResult] = []
        for request, (success, return_data) in zip(requests, entries):
            if not success:
                results.append(
                    CallResult(success=False, error=f"{request.function.name} reverted")
                )
                continue
            try:
                results.append(
                    CallResult(success=True, result=request.function.decode_output(return_data))
                )
            except DecodingError as exc:
                results.append(CallResult(success=False, error=str(exc)))

        logger.debug(
            "multicall",
            chain_id=self.chain_id,
            calls=len(requests),
            failed=sum(1 for r in results if not r.success),
        )
        return results

    async def get_storage_at(self, address: str, slot: str) -> bytes:
        result = await self._rpc_call(
            "eth_getStorageAt",
            [to_checksum_address(address), slot, "latest"],
        )
        return to_bytes(hexstr=result).rjust(32, b"\x00")

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _eth_call(self, to: str, data: bytes) -> bytes:
        result = await self._rpc_call(
            "eth_call",
            [{"to": to_checksum_address(to), "data": _hex(data)}, "latest"],
        )
        if not isinstance(result, str):
            raise RpcError(f"Invalid eth_call response: {result!r}")
        return to_bytes(hexstr=result)

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        self._request_id += 1
        response = await self._client.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
        )
        response.raise_for_status()
        payload = response.json()
        if "error" in payload:
            logger.warning("rpc_error", chain_id=self.chain_id, method=method, error=payload["error"])
            raise RpcError(payload["error"])
        return payload.get("result")
