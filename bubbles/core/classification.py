"""
Wallet tier and transaction pressure classification.

Every code path that turns raw balances into categorized wallets goes through
``classify_wallet``; every transaction label comes from
``classify_transaction``. Both are pure functions of their inputs and the
override tables below.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import AbstractSet, Dict, Iterable, Optional, Tuple, Union

from ..types.wallets import WalletRecord
from .recovery.errors import UnclassifiableTransactionError

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

WEI_PER_WCO = Decimal(10) ** 18
ONE_WEI = Decimal(1) / WEI_PER_WCO

# Balance at which a wallet counts as a large holder (Kraken).
LARGE_HOLDER_MIN_BALANCE = Decimal(5_000_000)
LARGE_TRANSACTION_THRESHOLD = Decimal(1_000_000)

BURN_ADDRESSES = (
    "0x0000000000000000000000000000000000000000",
    "0x000000000000000000000000000000000000dead",
)

FLAGSHIP_WALLETS: Dict[str, str] = {
    "0xfac510d5db8cadff323d4b979d898dc38f3fb6df": "Validation Nodes",
    "0x511a6355407bb78f26172db35100a87b9be20fc3": "Liquidity Provision",
    "0x2ca9472add8a02c74d50fc3ea444548502e35bdb": "Marketing & Community",
    "0xa306799ee31c7f89d3ff82d3397972933d57d679": "Premium Account Features",
    "0x94dbff05e1c129869772e1fb291901083cdadef1": "W Chain Ecosystem",
    "0x58213dd561d12a0ea7b538b1b26de34dace1d0f0": "Developer Incentives",
    "0x13768af351b4627dce8de6a67e59e4b27b4cbf5d": "Exchange Listings",
    "0xa237feafa2bac4096867af6229a2370b7a661a5f": "Incentives",
    "0xfc06231e2e448b778680202bea8427884c011341": "Institutional Sales",
    "0x80eabd19b84b4f5f042103e957964297589c657d": "Enterprises & Partnerships",
    "0x57ab15ca8bd528d509dbc81d11e9beca44f3445f": "Development Fund",
    "0xba9be06936c806aefad981ae96fa4d599b78ad24": "WTK Conversion / Total Supply",
    "0x67f2696c125d8d1307a5ae17348a440718229d03": "Treasury Wallet",
    "0x81d29c0dcd64fac05c4a394d455cbd79d210c200": "Buybacks",
}

EXCHANGE_WALLETS: Dict[str, str] = {
    "0x6cc8dcbca746a6e4fdefb98e1d0df903b107fd21": "Bitrue Exchange",
    "0x2802e182d5a15df915fd0363d8f1adfd2049f9ee": "MEXC Exchange",
    "0x430d2ada8140378989d20eae6d48ea05bbce2977": "Bitmart Exchange",
}

WRAPPED_WALLETS: Dict[str, str] = {
    "0xedb8008031141024d50ca2839a607b2f82c1c045": "Wrapped WCO Contract",
}


@dataclass(frozen=True)
class TierDefinition:
    name: str
    emoji: str
    min_balance: Decimal
    max_balance: Optional[Decimal] = None  # exclusive; None means unbounded
    is_override: bool = False
    description: str = ""

    def contains(self, balance: Decimal) -> bool:
        if balance < self.min_balance:
            return False
        return self.max_balance is None or balance < self.max_balance

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "emoji": self.emoji,
            "minBalance": float(self.min_balance),
            "maxBalance": float(self.max_balance) if self.max_balance is not None else None,
            "isOverride": self.is_override,
            "description": self.description,
        }


FLAGSHIP = TierDefinition("Flagship", "🚩", Decimal(0), is_override=True, description="W Chain team wallets")
HARBOR = TierDefinition("Harbor", "⚓", Decimal(0), is_override=True, description="Exchange wallets")
BRIDGE = TierDefinition("Bridge/Wrapped", "🌉", Decimal(0), is_override=True, description="Wrapped WCO contracts")

OVERRIDE_TIERS: Tuple[TierDefinition, ...] = (FLAGSHIP, HARBOR, BRIDGE)

# Half-open [min, max) bands, highest first. Together they cover [0, inf).
BALANCE_TIERS: Tuple[TierDefinition, ...] = (
    TierDefinition("Kraken", "🦑", Decimal(5_000_000), None, description="5M+ WCO"),
    TierDefinition("Whale", "🐋", Decimal(1_000_001), Decimal(5_000_000), description="1M - 5M WCO"),
    TierDefinition("Shark", "🦈", Decimal(500_001), Decimal(1_000_001), description="500K - 1M WCO"),
    TierDefinition("Dolphin", "🐬", Decimal(100_001), Decimal(500_001), description="100K - 500K WCO"),
    TierDefinition("Fish", "🐟", Decimal(50_001), Decimal(100_001), description="50K - 100K WCO"),
    TierDefinition("Octopus", "🐙", Decimal(10_001), Decimal(50_001), description="10K - 50K WCO"),
    TierDefinition("Crab", "🦀", Decimal(1_001), Decimal(10_001), description="1K - 10K WCO"),
    TierDefinition("Shrimp", "🦐", ONE_WEI, Decimal(1_001), description="Up to 1K WCO"),
    TierDefinition("Plankton", "🦠", Decimal(0), ONE_WEI, description="Empty wallets"),
)

PLANKTON = BALANCE_TIERS[-1]

ALL_TIERS: Tuple[TierDefinition, ...] = OVERRIDE_TIERS + BALANCE_TIERS
TIERS_BY_NAME: Dict[str, TierDefinition] = {tier.name.lower(): tier for tier in ALL_TIERS}
TIER_ALIASES = {"bridge": "bridge/wrapped", "wrapped": "bridge/wrapped", "exchange": "harbor"}


def to_decimal(value: Optional[Number]) -> Decimal:
    """Parse a balance; anything unparseable or non-finite counts as zero."""
    if value is None or value == "":
        return Decimal(0)
    try:
        # str() keeps floats like 4999999.99 from picking up binary noise
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("Unparseable balance %r treated as 0", value)
        return Decimal(0)
    if not amount.is_finite():
        logger.warning("Non-finite balance %r treated as 0", value)
        return Decimal(0)
    return amount


def wei_to_wco(value: Optional[Number]) -> Decimal:
    """Scale a base-unit amount (wei string or int) to whole WCO."""
    return to_decimal(value) / WEI_PER_WCO


def find_tier(name: str) -> Optional[TierDefinition]:
    """Case-insensitive tier lookup; accepts "Bridge" for Bridge/Wrapped."""
    key = (name or "").strip().lower()
    key = TIER_ALIASES.get(key, key)
    return TIERS_BY_NAME.get(key)


def override_label(address: str) -> Optional[Tuple[TierDefinition, str]]:
    addr = (address or "").lower()
    for tier, table in ((FLAGSHIP, FLAGSHIP_WALLETS), (HARBOR, EXCHANGE_WALLETS), (BRIDGE, WRAPPED_WALLETS)):
        label = table.get(addr)
        if label:
            return tier, label
    return None


def classify_wallet(balance: Number, address: str) -> TierDefinition:
    """Return the tier for a wallet. Overrides win over any balance."""
    override = override_label(address)
    if override:
        return override[0]

    amount = to_decimal(balance)
    for tier in BALANCE_TIERS:
        if amount >= tier.min_balance:
            return tier
    return PLANKTON


def label_for(address: str) -> Optional[str]:
    override = override_label(address)
    return override[1] if override else None


def is_large_holder(balance: Number) -> bool:
    return to_decimal(balance) >= LARGE_HOLDER_MIN_BALANCE


class TransactionClassification(str, Enum):
    SELL_PRESSURE = "sell_pressure"
    BUY_PRESSURE = "buy_pressure"
    INTERNAL_MOVE = "internal_move"
    OUTFLOW = "outflow"
    INFLOW = "inflow"

    @property
    def details(self) -> Dict[str, str]:
        return CLASSIFICATION_DETAILS[self]


CLASSIFICATION_DETAILS: Dict[TransactionClassification, Dict[str, str]] = {
    TransactionClassification.SELL_PRESSURE: {
        "label": "Sell Pressure",
        "emoji": "🚨",
        "description": "Kraken → Exchange (Potential Sell)",
    },
    TransactionClassification.BUY_PRESSURE: {
        "label": "Buy Pressure",
        "emoji": "🚨",
        "description": "Exchange → Kraken (Accumulation)",
    },
    TransactionClassification.INTERNAL_MOVE: {
        "label": "Internal Move",
        "emoji": "🔄",
        "description": "Kraken ↔ Kraken Transfer",
    },
    TransactionClassification.OUTFLOW: {
        "label": "Outflow",
        "emoji": "📤",
        "description": "Kraken → Other Wallet",
    },
    TransactionClassification.INFLOW: {
        "label": "Inflow",
        "emoji": "📥",
        "description": "Other Wallet → Kraken",
    },
}


def _normalize(addresses: Iterable[str]) -> AbstractSet[str]:
    return {a.lower() for a in addresses if a}


def involves_large_holder(from_address: str, to_address: str, large_holders: Iterable[str]) -> bool:
    """Pre-filter for ``classify_transaction``."""
    holders = _normalize(large_holders)
    return (from_address or "").lower() in holders or (to_address or "").lower() in holders


def classify_transaction(
    from_address: str,
    to_address: str,
    large_holders: Iterable[str],
    exchanges: Iterable[str] = EXCHANGE_WALLETS.keys(),
) -> TransactionClassification:
    """
    Label a transfer by large-holder and exchange membership of its ends.

    Raises UnclassifiableTransactionError when neither side is a large
    holder; use ``involves_large_holder`` to filter first.
    """
    holders = _normalize(large_holders)
    exchange_set = _normalize(exchanges)
    sender = (from_address or "").lower()
    recipient = (to_address or "").lower()

    from_large = sender in holders
    to_large = recipient in holders

    if from_large and recipient in exchange_set:
        return TransactionClassification.SELL_PRESSURE
    if sender in exchange_set and to_large:
        return TransactionClassification.BUY_PRESSURE
    if from_large and to_large:
        return TransactionClassification.INTERNAL_MOVE
    if from_large:
        return TransactionClassification.OUTFLOW
    if to_large:
        return TransactionClassification.INFLOW

    raise UnclassifiableTransactionError(
        f"neither {sender or '?'} nor {recipient or '?'} is a large holder"
    )


def build_wallet_record(address: str, balance: Number, transaction_count: int = 0) -> WalletRecord:
    """Classify a raw balance into a WalletRecord."""
    amount = to_decimal(balance)
    tier = classify_wallet(amount, address)
    return WalletRecord(
        address=address,
        balance=amount,
        transaction_count=int(transaction_count or 0),
        category=tier.name,
        emoji=tier.emoji,
        label=label_for(address),
        is_flagship=tier is FLAGSHIP,
        is_exchange=tier is HARBOR,
        is_wrapped=tier is BRIDGE,
    )
