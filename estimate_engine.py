from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Tuple

from pricing_catalog import CatalogError, PricingCatalog, ProjectCategory, ScaleTier


@dataclass(frozen=True)
class SelectionState:
    category: ProjectCategory
    scale: ScaleTier
    # Insertion order is kept for display only; pricing ignores it.
    selected_features: Tuple[str, ...] = ()
    design_provided: bool = True
    wants_maintenance: bool = False

    @classmethod
    def default(cls, catalog: PricingCatalog) -> "SelectionState":
        return cls(
            category=catalog.categories[0].id,
            scale=catalog.scales[0].id,
        )

    def with_feature_toggled(self, feature_id: str) -> "SelectionState":
        if feature_id in self.selected_features:
            remaining = tuple(f for f in self.selected_features if f != feature_id)
            return replace(self, selected_features=remaining)
        return replace(self, selected_features=self.selected_features + (feature_id,))

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.category.value,
            "scale": self.scale.value,
            "selectedFeatures": list(self.selected_features),
            "designProvided": self.design_provided,
            "wantsMaintenance": self.wants_maintenance,
        }


@dataclass(frozen=True)
class LineItem:
    code: str
    description: str
    amount_jpy: int


@dataclass(frozen=True)
class EstimateResult:
    line_items: Tuple[LineItem, ...]
    total_jpy: int
    # Recurring fee, reported next to the one-time total and never added to it.
    monthly_maintenance_jpy: int = 0
    notes: Tuple[str, ...] = field(default_factory=tuple)


def _round_yen(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _feature_sum(state: SelectionState, catalog: PricingCatalog) -> int:
    if len(set(state.selected_features)) != len(state.selected_features):
        raise CatalogError("selected features must not contain duplicates")
    return sum(catalog.feature(f).price_jpy for f in state.selected_features)


def compute_total(state: SelectionState, catalog: PricingCatalog) -> int:
    """
    One-time project cost in whole yen.

        round((base + features) * scale multiplier + design fee)

    Monthly maintenance is deliberately not part of the total.
    """
    base = catalog.category(state.category).base_price_jpy
    multiplier = catalog.scale(state.scale).multiplier
    design_fee = 0 if state.design_provided else catalog.design_from_scratch_jpy
    subtotal = Decimal(base + _feature_sum(state, catalog)) * multiplier + Decimal(design_fee)
    return _round_yen(subtotal)


def generate_estimate(state: SelectionState, catalog: PricingCatalog) -> EstimateResult:
    """
    Itemised version of `compute_total` for the result step and exports.

    The scale line carries the multiplier adjustment so the items always add up to the total.
    """
    category = catalog.category(state.category)
    scale = catalog.scale(state.scale)
    total = compute_total(state, catalog)

    line_items: List[LineItem] = [
        LineItem(
            code="BASE",
            description=f"基本料金 ({category.label})",
            amount_jpy=category.base_price_jpy,
        )
    ]
    for feature_id in state.selected_features:
        feature = catalog.feature(feature_id)
        line_items.append(
            LineItem(
                code=f"FEATURE_{feature.id.upper()}",
                description=f"機能: {feature.label}",
                amount_jpy=feature.price_jpy,
            )
        )

    design_fee = 0 if state.design_provided else catalog.design_from_scratch_jpy
    pre_scale = category.base_price_jpy + _feature_sum(state, catalog)
    scale_adjustment = total - design_fee - pre_scale
    if scale_adjustment:
        line_items.append(
            LineItem(
                code="SCALE",
                description=f"規模係数 x{scale.multiplier} ({scale.label})",
                amount_jpy=scale_adjustment,
            )
        )
    if design_fee:
        line_items.append(
            LineItem(
                code="DESIGN",
                description="デザイン制作 (ゼロから作成)",
                amount_jpy=design_fee,
            )
        )

    notes: List[str] = ["税抜価格・要件により変動します。"]
    monthly = 0
    if state.wants_maintenance:
        monthly = catalog.monthly_maintenance_jpy
        notes.append("保守サポートは月額費用として別途ご請求します。")

    return EstimateResult(
        line_items=tuple(line_items),
        total_jpy=total,
        monthly_maintenance_jpy=monthly,
        notes=tuple(notes),
    )
