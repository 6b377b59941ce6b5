"""Tests for the coin-addressed trading client."""

import pytest
from eth_account import Account

from hyperwire.errors import AssetNotFoundError, NoPositionError
from hyperwire.exchange.actions import LimitOrderType
from hyperwire.exchange.client import ExchangeClient
from hyperwire.exchange.dispatcher import RequestDispatcher
from hyperwire.info import InfoClient

NOW = 1_700_000_000_000
DESTINATION = "0x5e9ee1089755c3435139848e47e6635505d5a13a"


def _position(coin, szi):
    return {"assetPositions": [{"position": {"coin": coin, "szi": szi}, "type": "oneWay"}]}


@pytest.fixture
def client_for(fake_transport, signer, nonces, clock, routed_handler):
    def build(**info_answers):
        fake_transport.handler = routed_handler(**info_answers)
        dispatcher = RequestDispatcher(fake_transport, signer, nonces, clock=clock)
        return ExchangeClient(dispatcher, InfoClient(fake_transport))

    return build


class TestExchangeClient:
    """Tests for ExchangeClient."""

    @pytest.mark.asyncio
    async def test_order_resolves_asset(self, client_for, fake_transport):
        client = client_for()
        result = await client.order("ETH", False, 0.5, 3000.0, LimitOrderType("Alo"))

        assert result.ok
        action = fake_transport.exchange_payloads[0]["action"]
        assert action["orders"][0] == {
            "a": 1,
            "b": False,
            "p": "3000",
            "s": "0.5",
            "r": False,
            "t": {"limit": {"tif": "Alo"}},
        }

    @pytest.mark.asyncio
    async def test_assets_loaded_once(self, client_for, fake_transport):
        client = client_for()
        await client.order("BTC", True, 1.0, 50000.0)
        await client.cancel("BTC", 77)

        info_types = [p["type"] for path, p in fake_transport.requests if path == "/info"]
        assert info_types == ["meta", "spotMeta"]

    @pytest.mark.asyncio
    async def test_unknown_coin_raises(self, client_for):
        client = client_for()
        with pytest.raises(AssetNotFoundError):
            await client.order("DOGE", True, 1.0, 1.0)

    @pytest.mark.asyncio
    async def test_market_open_prices_through_mid(self, client_for, fake_transport):
        client = client_for(allMids={"BTC": "50000"})
        await client.market_open("BTC", True, 0.123456789)

        order = fake_transport.exchange_payloads[0]["action"]["orders"][0]
        assert order["p"] == "52500"
        assert order["s"] == "0.12346"
        assert order["t"] == {"limit": {"tif": "Ioc"}}

    @pytest.mark.asyncio
    async def test_market_close_flattens_short(self, client_for, fake_transport, signer):
        client = client_for(allMids={"BTC": "50000"}, clearinghouseState=_position("BTC", "-0.5"))
        await client.market_close("BTC")

        order = fake_transport.exchange_payloads[0]["action"]["orders"][0]
        assert order["b"] is True
        assert order["r"] is True
        assert order["s"] == "0.5"

    @pytest.mark.asyncio
    async def test_market_close_without_position(self, client_for, fake_transport):
        client = client_for(clearinghouseState={"assetPositions": []})
        with pytest.raises(NoPositionError):
            await client.market_close("BTC")
        assert fake_transport.exchange_payloads == []

    @pytest.mark.asyncio
    async def test_market_close_flat_position(self, client_for):
        client = client_for(clearinghouseState=_position("ETH", "0.0"))
        with pytest.raises(NoPositionError):
            await client.market_close("ETH")

    @pytest.mark.asyncio
    async def test_market_close_unknown_coin(self, client_for):
        client = client_for(clearinghouseState={"assetPositions": []})
        with pytest.raises(AssetNotFoundError):
            await client.market_close("DOGE")

    @pytest.mark.asyncio
    async def test_update_leverage(self, client_for, fake_transport):
        client = client_for()
        await client.update_leverage("ETH", 10, is_cross=False)

        assert fake_transport.exchange_payloads[0]["action"] == {
            "type": "updateLeverage",
            "asset": 1,
            "isCross": False,
            "leverage": 10,
        }

    @pytest.mark.asyncio
    async def test_usd_transfer_uses_nonce_as_time(self, client_for, fake_transport):
        client = client_for()
        await client.usd_transfer(DESTINATION, 12.5)

        payload = fake_transport.exchange_payloads[0]
        assert payload["action"]["type"] == "usdSend"
        assert payload["action"]["amount"] == "12.5"
        assert payload["action"]["time"] == payload["nonce"] == NOW

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount, wire",
        [(0.00001, "0.00001"), (0.1 + 0.2, "0.3"), (100.0, "100"), ("2.50", "2.50")],
    )
    async def test_transfer_amounts_are_plain_decimals(self, client_for, fake_transport, amount, wire):
        client = client_for()
        await client.usd_class_transfer(amount, True)
        await client.withdraw_from_bridge(DESTINATION, amount)

        assert [p["action"]["amount"] for p in fake_transport.exchange_payloads] == [wire, wire]

    @pytest.mark.asyncio
    async def test_approve_agent_returns_new_key(self, client_for, fake_transport):
        client = client_for()
        agent_key, result = await client.approve_agent("bot")

        action = fake_transport.exchange_payloads[0]["action"]
        assert action["agentAddress"] == Account.from_key(agent_key).address.lower()
        assert action["agentName"] == "bot"
        assert result.nonce == NOW

    @pytest.mark.asyncio
    async def test_vault_transfer_uses_micro_units(self, client_for, fake_transport):
        client = client_for()
        await client.vault_transfer(DESTINATION, True, 5.0)

        assert fake_transport.exchange_payloads[0]["action"]["usd"] == 5_000_000

    @pytest.mark.asyncio
    async def test_account_address_defaults_to_signer(self, client_for, signer):
        assert client_for().account_address == signer.address
