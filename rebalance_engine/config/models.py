"""Pydantic configuration models with type safety and validation."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rebalance_engine.signals.expression import Comparison, parse_expression

RankingMetric = Literal["return", "sma_slope", "ema_slope", "rsi"]


# ---------------------------------------------------------------------------
# Signal conditions
# ---------------------------------------------------------------------------


class SignalRule(BaseModel):
    """One ordered rule of a signal condition."""

    model_config = ConfigDict(frozen=True)

    when: str = Field(
        description="Comparison against the latest reading, e.g. 'value < 25'",
    )

    @field_validator("when")
    @classmethod
    def _parse_when(cls, value: str) -> str:
        # Raises ExpressionError (a ValueError) for anything outside the grammar
        parse_expression(value)
        return value.strip()

    @property
    def comparison(self) -> Comparison:
        return parse_expression(self.when)


class ModifierRule(SignalRule):
    scale_factor: float = Field(
        ge=0.0,
        le=1.0,
        description="Multiplier applied to the scoped symbols' target weight",
    )


class GateRule(SignalRule):
    allow: bool = Field(description="False removes the scoped symbols before targeting")


class TriggerRule(SignalRule):
    action: Literal["buy", "sell"]
    symbol: str = Field(min_length=1)
    allocation_pct: float = Field(
        gt=0.0,
        le=1.0,
        description="Fraction of the strategy's allocated equity given to the injected target",
    )

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.strip().upper()


class _ConditionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_id: str = Field(min_length=1, description="Signal source the rules read")
    symbols: list[str] | None = Field(
        default=None,
        description="Symbols the condition applies to (None = every ranked symbol)",
    )

    @field_validator("symbols")
    @classmethod
    def _upper_symbols(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [s.strip().upper() for s in value]


class PositionModifierCondition(_ConditionBase):
    action: Literal["position_modifier"] = "position_modifier"
    rules: list[ModifierRule] = Field(min_length=1)


class ConditionalGateCondition(_ConditionBase):
    action: Literal["conditional_gate"] = "conditional_gate"
    rules: list[GateRule] = Field(min_length=1)


class DirectTriggerCondition(_ConditionBase):
    action: Literal["direct_trigger"] = "direct_trigger"
    rules: list[TriggerRule] = Field(min_length=1)


SignalCondition = Annotated[
    Union[PositionModifierCondition, ConditionalGateCondition, DirectTriggerCondition],
    Field(discriminator="action"),
]


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


class UniverseConfig(BaseModel):
    """Where the strategy's candidate symbols come from."""

    model_config = ConfigDict(frozen=True)

    type: Literal["predefined", "custom", "synthetic"] = "predefined"
    predefined_list: str | None = Field(default=None, description="e.g. mag7, dow30")
    custom_symbols: list[str] = Field(default_factory=list)
    synthetic_index: str | None = Field(
        default=None,
        description="Id of a tenant-defined composite whose components form the universe",
    )

    @model_validator(mode="after")
    def _source_present(self) -> "UniverseConfig":
        if self.type == "predefined" and not self.predefined_list:
            raise ValueError("predefined universe requires predefined_list")
        if self.type == "custom" and not self.custom_symbols:
            raise ValueError("custom universe requires at least one symbol")
        if self.type == "synthetic" and not self.synthetic_index:
            raise ValueError("synthetic universe requires synthetic_index")
        return self


class StrategyConfig(BaseModel):
    """Configuration of one tenant strategy. Immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    name: str = ""
    template_id: str | None = None
    lookback_days: int = Field(
        default=30,
        ge=2,
        le=1000,
        description="Trailing bars used for ranking. Recommended: 10-60",
    )
    ranking_metric: RankingMetric = "return"
    long_n: int = Field(default=10, ge=0, description="Top-ranked symbols held long")
    short_n: int = Field(default=0, ge=0, description="Bottom-ranked symbols held short")
    rebalance_fraction: float = Field(
        default=0.25,
        gt=0.0,
        le=1.0,
        description="Fraction of the target gap traded per run. Recommended: 0.25",
    )
    max_weight_per_symbol: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Cap on any one symbol's share of equity",
    )
    cash_reserve_pct: float = Field(
        default=0.0,
        ge=0.0,
        lt=1.0,
        description="Share of equity kept uninvested",
    )
    allocation_pct: float = Field(
        default=100.0,
        ge=0.0,
        le=100.0,
        description="Percent of account equity this strategy sizes its targets against",
    )
    weight_scheme: Literal["equal"] = "equal"
    signal_conditions: list[SignalCondition] = Field(default_factory=list)
    universe: UniverseConfig
    rsi_period: int = Field(default=14, ge=2, le=200)
    ma_period: int = Field(default=10, ge=2, le=200)

    @model_validator(mode="after")
    def _has_positions(self) -> "StrategyConfig":
        if self.long_n + self.short_n < 1:
            raise ValueError("long_n + short_n must be at least 1")
        return self

    @property
    def signal_source_ids(self) -> list[str]:
        """Distinct signal sources referenced by the conditions, in order."""
        seen: list[str] = []
        for condition in self.signal_conditions:
            if condition.source_id not in seen:
                seen.append(condition.source_id)
        return seen

    def snapshot(self) -> "StrategyConfig":
        """Deep copy taken at run start."""
        return self.model_copy(deep=True)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RunSettings(BaseModel):
    """Orchestration limits and pipeline thresholds."""

    max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Tenants processed concurrently. Size to broker rate limits",
    )
    time_budget_seconds: float = Field(
        default=270.0,
        gt=0.0,
        description="Wall-clock budget; no new tenant/strategy starts once spent",
    )
    min_order_notional: float = Field(
        default=1.0,
        ge=0.0,
        description="Dust floor in USD; smaller deltas produce no order",
    )
    min_bars: int = Field(default=5, ge=2, description="Bars required to rank a symbol")
    bar_timeframe: str = Field(default="1Day")
    signal_max_age_minutes: float | None = Field(
        default=1440.0,
        gt=0.0,
        description="Readings older than this are treated as unavailable (None = no limit)",
    )
    position_scope: Literal["account", "owned"] = Field(
        default="owned",
        description="owned: only symbols this strategy still holds from its own orders; account: every broker position",
    )
    respect_buying_power: bool = Field(
        default=True,
        description="Scale buy orders down when they exceed reported buying power",
    )
    guard_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="Expiry of the cross-process strategy lock",
    )


class MetricsSettings(BaseModel):
    enabled: bool = False
    port: int = Field(default=9090, ge=1, le=65535)
    prefix: str = "rebalancer"


class SentrySettings(BaseModel):
    dsn: str = ""
    environment: str = "development"
    traces_sample_rate: float = Field(default=0.0, ge=0.0, le=1.0)


class SignalSourceConfig(BaseModel):
    """HTTP JSON signal source."""

    url: str = Field(min_length=1)
    jsonpath: str = Field(default="$", description="e.g. $.data[0].value")
    headers: dict[str, str] = Field(default_factory=dict)


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    run: RunSettings = Field(default_factory=RunSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)
    database_url: str = Field(default="sqlite:///:memory:")
    redis_url: str | None = None
    broker_factory: str = Field(
        default="rebalance_engine.broker.stub_client:create_stub_broker",
        description="'module:callable' building a BrokerClient from tenant credentials",
    )
    signal_sources: dict[str, SignalSourceConfig] = Field(default_factory=dict)
    signal_cache_ttl_seconds: int = Field(default=300, ge=0)
