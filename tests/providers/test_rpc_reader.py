import pytest
from eth_abi import decode, encode

from sessionkit.core.sessions.abi import Multicall3Abi, SmartSessionsAbi
from sessionkit.core.sessions.errors import MissingClientForChain
from sessionkit.providers import rpc
from sessionkit.providers.base import CallRequest
from sessionkit.providers.rpc import JsonRpcChainReader, RpcError

SMART_SESSIONS = "0x00000000002b0ecfbd0496ee71e01257da0e37de"
ACCOUNT = "0x2222222222222222222222222222222222222222"
PID = b"\x01" * 32


class _DummyResponse:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _DummyClient:
    """Answers JSON-RPC posts from a method -> result (or callable) table."""

    def __init__(self, results):
        self.results = results
        self.requests = []
        self.is_closed = False

    async def post(self, url, json):
        self.requests.append(json)
        result = self.results[json["method"]]
        if callable(result):
            result = result(json["params"])
        if isinstance(result, dict) and "error" in result:
            return _DummyResponse({"jsonrpc": "2.0", "id": json["id"], **result})
        return _DummyResponse({"jsonrpc": "2.0", "id": json["id"], "result": result})

    async def aclose(self):
        self.is_closed = True


def _reader(results, chain_id=8453):
    client = _DummyClient(results)
    return JsonRpcChainReader(chain_id, "http://rpc.test", client=client), client


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


@pytest.mark.asyncio
async def test_call_encodes_and_decodes():
    reader, client = _reader({"eth_call": _hex(encode(["uint256"], [7]))})

    nonce = await reader.call(
        CallRequest(address=SMART_SESSIONS, function=SmartSessionsAbi.get_nonce, args=(PID, ACCOUNT))
    )

    assert nonce == 7
    (request,) = client.requests
    assert request["method"] == "eth_call"
    tx, block = request["params"]
    assert block == "latest"
    assert tx["to"].lower() == SMART_SESSIONS
    assert tx["data"] == _hex(SmartSessionsAbi.get_nonce.encode_call(PID, ACCOUNT))


@pytest.mark.asyncio
async def test_multicall_reports_failures_per_entry():
    def aggregate3(params):
        data = bytes.fromhex(params[0]["data"][2:])
        (calls,) = decode(list(Multicall3Abi.aggregate3.inputs), data[4:])
        assert [allow_failure for _, allow_failure, _ in calls] == [True, True, True]
        return _hex(
            encode(
                ["(bool,bytes)[]"],
                [[
                    (True, encode(["uint256"], [3])),
                    (False, b""),
                    (True, b"\x01"),  # too short to decode
                ]],
            )
        )

    reader, client = _reader({"eth_call": aggregate3})
    requests = [
        CallRequest(address=SMART_SESSIONS, function=SmartSessionsAbi.get_nonce, args=(PID, ACCOUNT))
        for _ in range(3)
    ]

    results = await reader.multicall(requests)

    assert [r.success for r in results] == [True, False, False]
    assert results[0].result == 3
    assert results[1].error == "getNonce reverted"
    assert client.requests[0]["params"][0]["to"] == reader.multicall3_address


@pytest.mark.asyncio
async def test_empty_multicall_skips_rpc():
    reader, client = _reader({})

    assert await reader.multicall([]) == []
    assert client.requests == []


@pytest.mark.asyncio
async def test_storage_slot_is_padded():
    reader, _ = _reader({"eth_getStorageAt": "0x01"})

    value = await reader.get_storage_at(ACCOUNT, "0x00")

    assert value == b"\x00" * 31 + b"\x01"


@pytest.mark.asyncio
async def test_rpc_error_is_raised():
    reader, _ = _reader({"eth_call": {"error": {"code": 3, "message": "execution reverted"}}})

    with pytest.raises(RpcError):
        await reader.call(
            CallRequest(address=SMART_SESSIONS, function=SmartSessionsAbi.get_nonce, args=(PID, ACCOUNT))
        )


@pytest.mark.asyncio
async def test_request_ids_increment():
    reader, client = _reader({"eth_chainId": "0x2105"})

    await reader.health_check()
    await reader.health_check()

    assert [r["id"] for r in client.requests] == [1, 2]


@pytest.mark.asyncio
async def test_health_check_detects_wrong_chain():
    reader, _ = _reader({"eth_chainId": "0x1"}, chain_id=8453)

    health = await reader.health_check()

    assert health["status"] == "error"
    assert "8453" in health["reason"]


@pytest.mark.asyncio
async def test_health_check_healthy():
    reader, _ = _reader({"eth_chainId": "0x2105"}, chain_id=8453)

    assert await reader.health_check() == {"status": "healthy", "chainId": 8453}


@pytest.mark.asyncio
async def test_aclose_closes_client():
    reader, client = _reader({})

    await reader.aclose()

    assert client.is_closed is True


def test_for_chain_uses_configured_url(monkeypatch):
    monkeypatch.setattr(rpc.settings, "rpc_urls", {8453: "http://base.test"})

    reader = JsonRpcChainReader.for_chain(8453)

    assert reader.chain_id == 8453
    assert reader.rpc_url == "http://base.test"


def test_for_chain_without_url(monkeypatch):
    monkeypatch.setattr(rpc.settings, "rpc_urls", {})

    with pytest.raises(MissingClientForChain):
        JsonRpcChainReader.for_chain(137)
