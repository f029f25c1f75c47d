from __future__ import annotations

from pydantic import BaseModel, Field

from lifequest.db_models import AxisScores, PlanItem, Progress, Series, ShopItem, Wallet


class ProgressPayload(BaseModel):
    level: int = 1
    exp: int = 0
    exp_to_next: int = 100

    @classmethod
    def from_snapshot(cls, progress: Progress) -> ProgressPayload:
        return cls(level=progress.level, exp=progress.exp, exp_to_next=progress.exp_to_next)


class WalletPayload(BaseModel):
    gold: int = 0
    diamond: int = 0

    @classmethod
    def from_snapshot(cls, wallet: Wallet) -> WalletPayload:
        return cls(gold=wallet.gold, diamond=wallet.diamond)


class AxisScoresPayload(BaseModel):
    body: int = 0
    focus: int = 0
    knowledge: int = 0
    discipline: int = 0
    organization: int = 0
    social: int = 0

    @classmethod
    def from_snapshot(cls, scores: AxisScores) -> AxisScoresPayload:
        return cls(**scores.as_dict())


class RewardPayload(BaseModel):
    gold_delta: int
    diamond_delta: int
    exp_delta: int
    axis_delta: dict[str, int] = Field(default_factory=dict)
    levelup: bool
    new_progress: ProgressPayload
    new_wallet: WalletPayload
    new_axis_scores: AxisScoresPayload


class CompleteTaskResult(BaseModel):
    completion_event_id: int
    completed_at: str
    reward: RewardPayload


class PurchaseResult(BaseModel):
    inventory_id: int
    new_wallet: WalletPayload


class EquipResult(BaseModel):
    equipped_at: str
    previous_item_id: int | None = None


class PlanItemView(BaseModel):
    id: int
    source: str
    series_id: int | None = None
    axis: str
    title: str
    description: str | None = None
    tier: int
    scheduled_at: str | None = None
    estimated_minutes: int
    status: str
    locked_by_user: bool = False
    sort_order: int

    @classmethod
    def from_item(cls, item: PlanItem) -> PlanItemView:
        return cls(
            id=item.id,
            source=item.source,
            series_id=item.series_id,
            axis=item.axis,
            title=item.title,
            description=item.description,
            tier=item.tier,
            scheduled_at=item.scheduled_at.isoformat() if item.scheduled_at else None,
            estimated_minutes=item.estimated_minutes,
            status=item.status.value,
            locked_by_user=item.locked_by_user,
            sort_order=item.sort_order,
        )


class PlanView(BaseModel):
    plan_id: int
    date: str
    items: list[PlanItemView] = Field(default_factory=list)


class TodayView(BaseModel):
    plan_id: int
    date: str
    axis_scores: AxisScoresPayload
    progress: ProgressPayload
    wallet: WalletPayload
    items: list[PlanItemView] = Field(default_factory=list)


class SeriesView(BaseModel):
    id: int
    title: str
    axis: str
    tier_default: int
    estimated_minutes_default: int
    active: bool
    rule_type: str
    rule_json: dict = Field(default_factory=dict)

    @classmethod
    def from_series(cls, series: Series) -> SeriesView:
        return cls(
            id=series.id,
            title=series.title,
            axis=series.axis,
            tier_default=series.tier_default,
            estimated_minutes_default=series.estimated_minutes_default,
            active=series.active,
            rule_type=series.rule.rule_type.value,
            rule_json=series.rule.to_json(),
        )


class ShopItemView(BaseModel):
    id: int
    axis: str | None = None
    slot: str
    rarity: str
    name: str
    description: str
    price_currency: str
    price_amount: int
    owned: bool = False
    equipped: bool = False

    @classmethod
    def from_item(cls, item: ShopItem, owned: bool, equipped: bool) -> ShopItemView:
        return cls(
            id=item.id,
            axis=item.axis,
            slot=item.slot,
            rarity=item.rarity,
            name=item.name,
            description=item.description,
            price_currency=item.price_currency,
            price_amount=item.price_amount,
            owned=owned,
            equipped=equipped,
        )


class LedgerReplay(BaseModel):
    user_id: int
    axis_scores: AxisScoresPayload
    progress: ProgressPayload
    wallet: WalletPayload
    total_exp: int
    entry_count: int
    matches_snapshots: bool
    mismatches: list[str] = Field(default_factory=list)
