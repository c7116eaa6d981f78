"""
Pydantic models for trading service payloads.

These models provide type-safe parsing of channel results, REST bodies
and broadcasts with automatic validation.
"""

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TradingSession(BaseModel):
    """A trading session for one symbol."""

    id: str
    symbol: str
    status: Literal["active", "closed", "liquidated"]
    initial_balance: float = Field(default=0.0, alias="initialBalance")
    reserve_balance: float = Field(default=0.0, alias="reserveBalance")
    trading_balance: float = Field(default=0.0, alias="tradingBalance")
    current_balance: float = Field(default=0.0, alias="currentBalance")
    total_pnl: float = Field(default=0.0, alias="totalPnL")
    average_entry_price: float | None = Field(default=None, alias="averageEntryPrice")
    total_position_size: float = Field(default=0.0, alias="totalPositionSize")
    averaging_count: int = Field(default=0, alias="averagingCount")
    liquidation_price: float | None = Field(default=None, alias="liquidationPrice")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    model_config = {"populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> object:
        """Accept numeric ids."""
        return str(v) if isinstance(v, int) else v

    @property
    def is_active(self) -> bool:
        """Check if the session is still trading."""
        return self.status == "active"


class Trade(BaseModel):
    """A single fill recorded for a session."""

    id: str
    session_id: str = Field(alias="sessionId")
    type: Literal["entry", "averaging", "exit"]
    side: Literal["buy", "sell"]
    price: float
    quantity: float
    value: float
    pnl: float | None = None
    roi: float | None = None
    binance_order_id: str | None = Field(default=None, alias="binanceOrderId")
    notes: str | None = None
    created_at: str | None = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True}

    @field_validator("id", "session_id", "binance_order_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: object) -> object:
        """Accept numeric ids."""
        return str(v) if isinstance(v, int) else v


class Indicators(BaseModel):
    """Technical indicators of one analysis timeframe."""

    sma20: float
    sma50: float
    rsi: float
    bb_upper: float = Field(alias="bbUpper")
    bb_middle: float = Field(alias="bbMiddle")
    bb_lower: float = Field(alias="bbLower")
    atr: float

    model_config = {"populate_by_name": True}


class MarketAnalysis(BaseModel):
    """Market analysis of a symbol on one timeframe."""

    symbol: str
    timeframe: str
    current_price: float = Field(alias="currentPrice")
    indicators: Indicators
    volatility: Literal["low", "medium", "high"]
    consolidation: bool
    support_level: float = Field(alias="supportLevel")
    resistance_level: float = Field(alias="resistanceLevel")
    weight: float

    model_config = {"populate_by_name": True}


class TotalBalance(BaseModel):
    """
    Aggregate account balance.

    The channel and REST renditions use different key names; both are
    accepted.
    """

    total_balance: float = Field(
        validation_alias=AliasChoices("totalBalance", "totalWalletBalance", "total_balance"),
    )
    available_balance: float = Field(
        validation_alias=AliasChoices(
            "availableBalance", "totalAvailableBalance", "available_balance"
        ),
    )
    unrealized_profit: float = Field(
        default=0.0,
        validation_alias=AliasChoices(
            "unrealizedProfit", "totalUnrealizedProfit", "unrealized_profit"
        ),
    )
    margin_balance: float = Field(
        default=0.0,
        validation_alias=AliasChoices("marginBalance", "totalMarginBalance", "margin_balance"),
    )
    used_balance: float = Field(
        default=0.0,
        validation_alias=AliasChoices("usedBalance", "totalUsedBalance", "used_balance"),
    )


class ActiveSessionWithROI(BaseModel):
    """Active session with live position return figures."""

    symbol: str
    session_id: str = Field(alias="sessionId")
    status: str
    has_position: bool = Field(alias="hasPosition")
    current_price: float | None = Field(default=None, alias="currentPrice")
    entry_price: float | None = Field(default=None, alias="entryPrice")
    roi: float | None = None
    pnl: float | None = None
    position_size: float | None = Field(default=None, alias="positionSize")
    total_pnl: float = Field(default=0.0, alias="totalPnL")
    initial_balance: float = Field(default=0.0, alias="initialBalance")
    current_balance: float = Field(default=0.0, alias="currentBalance")
    trading_balance: float = Field(default=0.0, alias="tradingBalance")

    model_config = {"populate_by_name": True}

    @field_validator("session_id", mode="before")
    @classmethod
    def coerce_session_id(cls, v: object) -> object:
        """Accept numeric ids."""
        return str(v) if isinstance(v, int) else v


class PositionsCount(BaseModel):
    """Number of open positions."""

    count: int


class AutoTradingStatus(BaseModel):
    """State of the periodic analysis loop."""

    is_running: bool = Field(
        default=False, validation_alias=AliasChoices("isRunning", "running", "is_running")
    )
    interval_ms: int | None = Field(
        default=None, validation_alias=AliasChoices("intervalMs", "interval_ms")
    )

    model_config = ConfigDict(extra="allow")


class ServerInfo(BaseModel):
    """Diagnostic information reported by the service."""

    version: str | None = None
    environment: str | None = None
    uptime: float | None = None

    model_config = ConfigDict(extra="allow")
