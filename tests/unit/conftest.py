"""Engine fixtures: one whitelisted trader per role, 6-dec collateral, 18-dec issuance.

Published prices: issuance 2.0 collateral per token, redemption 1.0.
Fees: 1% each way.
"""

import pytest

from src.fm_access.domain.roles import RoleRegistry
from src.fm_common.enums import Capability
from src.fm_fees.domain.fee_engine import FeeEngine
from src.fm_funding.engine.engine import FundingManagerEngine
from src.fm_ledger.infrastructure.memory_token import InMemoryToken
from src.fm_pricing.domain.manual_price_source import ManualPriceSource
from src.fm_redemption.infrastructure.batcher import RecordingSettlementBatcher

ALICE = "0xalice"
BOB = "0xbob"
MALLORY = "0xmallory"
GOV = "0xgov"
EXECUTOR = "0xexecutor"
MANAGER = "0xmanager"
PRICER = "0xpricer"
TREASURY = "0xtreasury"

STARTING_COLLATERAL = 10_000 * 10**6


@pytest.fixture
def roles() -> RoleRegistry:
    return RoleRegistry(
        {
            Capability.WHITELIST: [ALICE, BOB],
            Capability.GOVERNANCE: [GOV],
            Capability.QUEUE_EXECUTOR: [EXECUTOR],
            Capability.QUEUE_MANAGER: [MANAGER],
            Capability.PRICE_SETTER: [PRICER],
        }
    )


@pytest.fixture
async def collateral() -> InMemoryToken:
    token = InMemoryToken("USDC", 6)
    await token.mint(ALICE, STARTING_COLLATERAL)
    return token


@pytest.fixture
def issuance() -> InMemoryToken:
    return InMemoryToken("ISS", 18)


@pytest.fixture
def prices(roles: RoleRegistry) -> ManualPriceSource:
    source = ManualPriceSource(roles, collateral_decimals=6)
    source.set_issuance_and_redemption_price(PRICER, 2_000_000, 1_000_000)
    return source


@pytest.fixture
def batcher() -> RecordingSettlementBatcher:
    return RecordingSettlementBatcher()


@pytest.fixture
def engine(
    collateral: InMemoryToken,
    issuance: InMemoryToken,
    prices: ManualPriceSource,
    roles: RoleRegistry,
    batcher: RecordingSettlementBatcher,
) -> FundingManagerEngine:
    return FundingManagerEngine(
        collateral_token=collateral,
        issuance_token=issuance,
        price_source=prices,
        authorizer=roles,
        project_treasury=TREASURY,
        settlement=batcher,
        fees=FeeEngine(buy_fee_bps=100, sell_fee_bps=100),
    )
