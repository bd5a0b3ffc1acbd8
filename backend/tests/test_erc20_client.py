"""
ERC-20 Contract Read Client Tests
Validation order, concurrent reads, decoding and failure mapping

Run: python -m pytest tests/test_erc20_client.py -v
"""

import asyncio
import logging

import pytest

from conftest import FakeRpc, encode_string, encode_uint8, erc20_responses
from data_sources.erc20 import (
    ERC20_SELECTORS,
    DecodeError,
    ERC20MetadataClient,
    decode_string,
    decode_uint8,
    foreign_networks_for,
)
from data_sources.networks import StaticNetworkRegistry
from infrastructure.errors import (
    ContractReadError,
    InvalidAddressError,
    UnsupportedNetworkError,
)
from infrastructure.rpc import RpcError


def bytes32(text: str) -> str:
    return "0x" + text.encode().ljust(32, b"\x00").hex()


@pytest.fixture
def registry():
    return StaticNetworkRegistry()


# =============================================================================
# TEST: Decoding
# =============================================================================

class TestDecoding:

    def test_decode_dynamic_string(self):
        assert decode_string(encode_string("USD Coin")) == "USD Coin"

    def test_decode_bytes32_string(self):
        assert decode_string(bytes32("MKR")) == "MKR"

    def test_decode_strips_embedded_nul(self):
        assert decode_string(encode_string("AB\x00C")) == "ABC"

    def test_decode_empty_string(self):
        assert decode_string(encode_string("")) == ""

    def test_decode_invalid_utf8_is_replaced(self):
        raw = "0x" + b"\xffOK".ljust(32, b"\x00").hex()
        assert decode_string(raw) == "�OK"

    @pytest.mark.parametrize("raw", ["0x", "", None, "0xzz", "0x" + "00" * 10])
    def test_decode_string_rejects_garbage(self, raw):
        with pytest.raises(DecodeError):
            decode_string(raw)

    def test_decode_uint8(self):
        assert decode_uint8(encode_uint8(18)) == 18
        assert decode_uint8(encode_uint8(0)) == 0
        assert decode_uint8(encode_uint8(255)) == 255

    def test_decode_uint8_rejects_overflow(self):
        with pytest.raises(DecodeError):
            decode_uint8(encode_uint8(256))

    def test_decode_uint8_rejects_empty(self):
        with pytest.raises(DecodeError):
            decode_uint8("0x")


# =============================================================================
# TEST: Fetch
# =============================================================================

class TestFetchMetadata:

    @pytest.mark.asyncio
    async def test_fetches_usdc_on_arbitrum(self, registry, fake_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        metadata = await client.fetch_metadata("arbitrum", test_addresses["USDC_ARB"])

        assert metadata.address == test_addresses["USDC_ARB"]
        assert metadata.network == "arbitrum"
        assert metadata.name == "USD Coin"
        assert metadata.symbol == "USDC"
        assert metadata.decimals == 6
        assert metadata.cached is False
        assert metadata.timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_issues_exactly_three_reads(self, registry, fake_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        await client.fetch_metadata("arbitrum", test_addresses["USDC_ARB"])

        selectors = sorted(data for _, _, data in fake_rpc.calls)
        assert selectors == sorted(ERC20_SELECTORS.values())
        rpc_urls = {url for url, _, _ in fake_rpc.calls}
        assert rpc_urls == {"https://arb-mainnet.g.alchemy.com/v2/demo"}

    @pytest.mark.asyncio
    async def test_mixed_case_address_is_lowercased(self, registry, fake_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        metadata = await client.fetch_metadata("mainnet", test_addresses["USDC_MAINNET"])

        assert metadata.address == test_addresses["USDC_MAINNET"].lower()
        # calls go out checksummed
        assert {to for _, to, _ in fake_rpc.calls} == {"0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"}

    @pytest.mark.asyncio
    async def test_network_id_is_case_insensitive(self, registry, fake_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        metadata = await client.fetch_metadata("Arbitrum", test_addresses["USDC_ARB"])

        assert metadata.network == "arbitrum"

    @pytest.mark.asyncio
    async def test_bytes32_token(self, registry, test_addresses):
        mkr = test_addresses["MKR"].lower()
        rpc = FakeRpc({mkr: {
            ERC20_SELECTORS["name"]: bytes32("Maker"),
            ERC20_SELECTORS["symbol"]: bytes32("MKR"),
            ERC20_SELECTORS["decimals"]: encode_uint8(18),
        }})
        client = ERC20MetadataClient(registry, rpc=rpc)

        metadata = await client.fetch_metadata("mainnet", mkr)

        assert metadata.name == "Maker"
        assert metadata.symbol == "MKR"
        assert metadata.decimals == 18


# =============================================================================
# TEST: Failures
# =============================================================================

class TestFetchFailures:

    @pytest.mark.asyncio
    async def test_invalid_address_makes_no_calls(self, registry, fake_rpc):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        with pytest.raises(InvalidAddressError) as exc_info:
            await client.fetch_metadata("arbitrum", "0x123")

        assert exc_info.value.status_code == 400
        assert fake_rpc.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_network_makes_no_calls(self, registry, fake_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        with pytest.raises(UnsupportedNetworkError) as exc_info:
            await client.fetch_metadata("not-a-chain", test_addresses["USDC_ARB"])

        assert "Unsupported network: not-a-chain" in exc_info.value.message
        assert "arbitrum" in exc_info.value.message
        assert fake_rpc.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_network_checked_before_address(self, registry, fake_rpc):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        with pytest.raises(UnsupportedNetworkError):
            await client.fetch_metadata("not-a-chain", "0x123")

    @pytest.mark.asyncio
    async def test_address_without_code(self, registry, fake_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=fake_rpc)

        with pytest.raises(ContractReadError) as exc_info:
            await client.fetch_metadata("arbitrum", test_addresses["EOA"])

        assert exc_info.value.public_message == "Token not found or invalid contract"
        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.cause, DecodeError)

    @pytest.mark.asyncio
    async def test_one_failed_read_fails_the_fetch(self, registry, test_addresses):
        address = test_addresses["USDC_ARB"]
        responses = erc20_responses("USD Coin", "USDC", 6)
        responses[ERC20_SELECTORS["decimals"]] = "0x"
        client = ERC20MetadataClient(registry, rpc=FakeRpc({address: responses}))

        with pytest.raises(ContractReadError):
            await client.fetch_metadata("arbitrum", address)

    @pytest.mark.asyncio
    async def test_decimals_out_of_range(self, registry, test_addresses):
        address = test_addresses["USDC_ARB"]
        responses = erc20_responses("USD Coin", "USDC", 6)
        responses[ERC20_SELECTORS["decimals"]] = encode_uint8(300)
        client = ERC20MetadataClient(registry, rpc=FakeRpc({address: responses}))

        with pytest.raises(ContractReadError):
            await client.fetch_metadata("arbitrum", address)

    @pytest.mark.asyncio
    async def test_transport_failure(self, registry, failing_rpc, test_addresses):
        client = ERC20MetadataClient(registry, rpc=failing_rpc)

        with pytest.raises(ContractReadError) as exc_info:
            await client.fetch_metadata("arbitrum", test_addresses["USDC_ARB"])

        assert isinstance(exc_info.value.cause, RpcError)
        assert "503" in exc_info.value.details["cause"]

    @pytest.mark.asyncio
    async def test_timeout(self, registry, test_addresses):
        class SlowRpc(FakeRpc):
            async def eth_call(self, rpc_url, to, data, block="latest"):
                self.calls.append((rpc_url, to, data))
                await asyncio.sleep(5)
                return "0x"

        client = ERC20MetadataClient(registry, rpc=SlowRpc({}), timeout=0.05)

        with pytest.raises(ContractReadError) as exc_info:
            await client.fetch_metadata("arbitrum", test_addresses["USDC_ARB"])

        assert isinstance(exc_info.value.cause, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_reads_run_concurrently(self, registry, test_addresses):
        class OverlapRpc(FakeRpc):
            in_flight = 0
            peak = 0

            async def eth_call(self, rpc_url, to, data, block="latest"):
                OverlapRpc.in_flight += 1
                OverlapRpc.peak = max(OverlapRpc.peak, OverlapRpc.in_flight)
                await asyncio.sleep(0.02)
                OverlapRpc.in_flight -= 1
                return await super().eth_call(rpc_url, to, data, block)

        address = test_addresses["USDC_ARB"]
        rpc = OverlapRpc({address: erc20_responses("USD Coin", "USDC", 6)})
        client = ERC20MetadataClient(registry, rpc=rpc)

        await client.fetch_metadata("arbitrum", address)

        assert OverlapRpc.peak == 3

    @pytest.mark.asyncio
    async def test_failed_read_waits_for_siblings(self, registry, test_addresses):
        finished = []

        class PartialRpc(FakeRpc):
            async def eth_call(self, rpc_url, to, data, block="latest"):
                if data == ERC20_SELECTORS["name"]:
                    raise RpcError("execution reverted", code=-32000, url=rpc_url)
                await asyncio.sleep(0.05)
                finished.append(data)
                return encode_uint8(6)

        client = ERC20MetadataClient(registry, rpc=PartialRpc({}))

        with pytest.raises(ContractReadError) as exc_info:
            await client.fetch_metadata("arbitrum", test_addresses["USDC_ARB"])

        assert isinstance(exc_info.value.cause, RpcError)
        assert sorted(finished) == sorted([ERC20_SELECTORS["symbol"], ERC20_SELECTORS["decimals"]])
        leftover = [
            task for task in asyncio.all_tasks()
            if task is not asyncio.current_task() and not task.done()
        ]
        assert leftover == []


# =============================================================================
# TEST: Cross-network advisory
# =============================================================================

class TestForeignNetworkWarning:

    def test_foreign_networks_for_known_token(self, test_addresses):
        assert foreign_networks_for("arbitrum", test_addresses["USDC_MAINNET"]) == ("mainnet",)

    def test_no_warning_on_home_network(self, test_addresses):
        assert foreign_networks_for("mainnet", test_addresses["USDC_MAINNET"]) == ()

    def test_unknown_address(self, test_addresses):
        assert foreign_networks_for("mainnet", test_addresses["EOA"]) == ()

    @pytest.mark.asyncio
    async def test_warning_is_advisory(self, registry, test_addresses, caplog):
        rpc = FakeRpc({})
        client = ERC20MetadataClient(registry, rpc=rpc)

        with caplog.at_level(logging.WARNING, logger="ERC20Client"):
            with pytest.raises(ContractReadError):
                await client.fetch_metadata("arbitrum", test_addresses["USDC_MAINNET"])

        assert "known token on mainnet" in caplog.text
        assert len(rpc.calls) == 3
