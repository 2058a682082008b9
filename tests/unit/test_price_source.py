"""Unit tests for the price source interface check and adapter."""

from unittest.mock import AsyncMock

import pytest

from src.fm_common.errors import InvalidPriceError, InvalidPriceSourceInterfaceError
from src.fm_pricing.domain.price_source import (
    PriceSourceAdapter,
    PriceSourceProtocol,
    check_price_source_interface,
)


class FixedPriceSource:
    def __init__(self, issuance: int, redemption: int) -> None:
        self.issuance = issuance
        self.redemption = redemption

    async def get_price_for_issuance(self) -> int:
        return self.issuance

    async def get_price_for_redemption(self) -> int:
        return self.redemption


class IssuanceOnly:
    async def get_price_for_issuance(self) -> int:
        return 1


class TestInterfaceCheck:
    def test_accepts_complete_source(self) -> None:
        source = FixedPriceSource(1, 1)
        check_price_source_interface(source)
        assert isinstance(source, PriceSourceProtocol)

    def test_rejects_none(self) -> None:
        with pytest.raises(InvalidPriceSourceInterfaceError) as exc_info:
            check_price_source_interface(None)
        assert exc_info.value.code == 2002

    def test_rejects_partial_source(self) -> None:
        with pytest.raises(InvalidPriceSourceInterfaceError) as exc_info:
            check_price_source_interface(IssuanceOnly())
        assert "get_price_for_redemption" in exc_info.value.message

    def test_rejects_non_callable_attribute(self) -> None:
        source = FixedPriceSource(1, 1)
        source.get_price_for_redemption = 5  # type: ignore[method-assign,assignment]
        with pytest.raises(InvalidPriceSourceInterfaceError):
            check_price_source_interface(source)


class TestPriceSourceAdapter:
    @pytest.mark.asyncio
    async def test_reads_rates(self) -> None:
        adapter = PriceSourceAdapter(FixedPriceSource(2 * 10**18, 10**18))
        assert await adapter.issuance_rate() == 2 * 10**18
        assert await adapter.redemption_rate() == 10**18

    @pytest.mark.asyncio
    async def test_zero_rate_rejected(self) -> None:
        adapter = PriceSourceAdapter(FixedPriceSource(0, 10**18))
        with pytest.raises(InvalidPriceError):
            await adapter.issuance_rate()

    @pytest.mark.asyncio
    async def test_negative_rate_rejected(self) -> None:
        adapter = PriceSourceAdapter(FixedPriceSource(10**18, -1))
        with pytest.raises(InvalidPriceError):
            await adapter.redemption_rate()

    @pytest.mark.asyncio
    async def test_source_errors_propagate(self) -> None:
        source = FixedPriceSource(1, 1)
        failing = AsyncMock(side_effect=RuntimeError("feed down"))
        source.get_price_for_issuance = failing  # type: ignore[method-assign]
        adapter = PriceSourceAdapter(source)
        with pytest.raises(RuntimeError, match="feed down"):
            await adapter.issuance_rate()

    @pytest.mark.asyncio
    async def test_attach_replaces_source(self) -> None:
        adapter = PriceSourceAdapter(FixedPriceSource(1, 1))
        replacement = FixedPriceSource(3, 3)
        adapter.attach(replacement)
        assert adapter.source is replacement
        assert await adapter.issuance_rate() == 3

    def test_failed_attach_keeps_previous(self) -> None:
        original = FixedPriceSource(1, 1)
        adapter = PriceSourceAdapter(original)
        with pytest.raises(InvalidPriceSourceInterfaceError):
            adapter.attach(IssuanceOnly())  # type: ignore[arg-type]
        assert adapter.source is original
