from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping, Tuple

logger = logging.getLogger(__name__)


class ProjectCategory(str, Enum):
    WEB = "web"
    APP = "app"
    MIGRATION = "migration"
    UI_UX = "ui_ux"
    EC = "ec"
    LP = "lp"


class ScaleTier(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class CatalogError(ValueError):
    pass


@dataclass(frozen=True)
class CategoryOption:
    id: ProjectCategory
    label: str
    description: str
    base_price_jpy: int


@dataclass(frozen=True)
class FeatureOption:
    id: str
    label: str
    description: str
    price_jpy: int


@dataclass(frozen=True)
class ScaleOption:
    id: ScaleTier
    label: str
    description: str
    multiplier: Decimal


@dataclass(frozen=True)
class PricingCatalog:
    # Tuples keep display order; the first category / scale is the default.
    categories: Tuple[CategoryOption, ...]
    features: Tuple[FeatureOption, ...]
    scales: Tuple[ScaleOption, ...]
    design_from_scratch_jpy: int
    monthly_maintenance_jpy: int

    @property
    def category_base_price(self) -> Mapping[ProjectCategory, int]:
        return {c.id: c.base_price_jpy for c in self.categories}

    @property
    def feature_price(self) -> Mapping[str, int]:
        return {f.id: f.price_jpy for f in self.features}

    @property
    def scale_multiplier(self) -> Mapping[ScaleTier, Decimal]:
        return {s.id: s.multiplier for s in self.scales}

    def category(self, category_id: object) -> CategoryOption:
        key = _coerce_enum(ProjectCategory, category_id, "category")
        for c in self.categories:
            if c.id is key:
                return c
        raise CatalogError(f"category {key.value!r} has no catalog entry")

    def feature(self, feature_id: str) -> FeatureOption:
        for f in self.features:
            if f.id == feature_id:
                return f
        raise CatalogError(f"unknown feature id {feature_id!r}")

    def scale(self, scale_id: object) -> ScaleOption:
        key = _coerce_enum(ScaleTier, scale_id, "scale")
        for s in self.scales:
            if s.id is key:
                return s
        raise CatalogError(f"scale {key.value!r} has no catalog entry")

    def has_feature(self, feature_id: str) -> bool:
        return any(f.id == feature_id for f in self.features)

    def category_label(self, category_id: object) -> str:
        return self.category(category_id).label

    def scale_label(self, scale_id: object) -> str:
        return self.scale(scale_id).label

    def feature_labels(self, feature_ids: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(self.feature(f).label for f in feature_ids)


def _coerce_enum(enum_cls, value: object, kind: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value))
    except ValueError:
        raise CatalogError(f"unknown {kind} id {value!r}") from None


def validate_catalog(catalog: PricingCatalog) -> PricingCatalog:
    """
    Check the catalog covers every enumerated id and that prices are sane.

    A failure here is a configuration bug, so it is raised at startup instead of
    surfacing later as a pricing error in front of a visitor.
    """
    problems: list[str] = []

    category_ids = [c.id for c in catalog.categories]
    for cat in ProjectCategory:
        if cat not in category_ids:
            problems.append(f"missing category {cat.value!r}")
    if len(set(category_ids)) != len(category_ids):
        problems.append("duplicate category entries")
    for c in catalog.categories:
        if c.base_price_jpy <= 0:
            problems.append(f"category {c.id.value!r} base price must be positive")

    feature_ids = [f.id for f in catalog.features]
    if len(set(feature_ids)) != len(feature_ids):
        problems.append("duplicate feature ids")
    for f in catalog.features:
        if f.price_jpy <= 0:
            problems.append(f"feature {f.id!r} price must be positive")

    scale_ids = [s.id for s in catalog.scales]
    for tier in ScaleTier:
        if tier not in scale_ids:
            problems.append(f"missing scale {tier.value!r}")
    previous = None
    for s in catalog.scales:
        if s.multiplier < Decimal("1.0"):
            problems.append(f"scale {s.id.value!r} multiplier must be >= 1.0")
        if previous is not None and s.multiplier <= previous:
            problems.append("scale multipliers must increase with tier size")
        previous = s.multiplier

    if catalog.design_from_scratch_jpy < 0:
        problems.append("design surcharge must be >= 0")
    if catalog.monthly_maintenance_jpy < 0:
        problems.append("monthly maintenance fee must be >= 0")

    if problems:
        logger.error("Pricing catalog failed validation: %s", "; ".join(problems))
        raise CatalogError("invalid pricing catalog: " + "; ".join(problems))
    return catalog


def load_default_catalog() -> PricingCatalog:
    """
    The agency's published price table.

    Prices are tax-exclusive whole yen. Scale multipliers follow screen/page count.
    """
    categories = (
        CategoryOption(
            ProjectCategory.WEB,
            "Web System",
            "業務システム・SaaS・マッチングサイト等、ブラウザで動く機能開発。",
            400000,
        ),
        CategoryOption(
            ProjectCategory.APP,
            "Native App",
            "iOS / Androidアプリ開発。プッシュ通知やカメラ連携など。",
            700000,
        ),
        CategoryOption(
            ProjectCategory.MIGRATION,
            "System Renewal",
            "古いシステムの言語刷新、クラウド移行、セキュリティ強化。",
            500000,
        ),
        CategoryOption(
            ProjectCategory.UI_UX,
            "UI/UX Redesign",
            "機能はそのままに、見た目と使い勝手だけを現代風に改善。",
            250000,
        ),
        CategoryOption(
            ProjectCategory.EC,
            "EC / Portal",
            "ECサイト、メディア、ポータルサイトなどのコンテンツ重視型。",
            450000,
        ),
        CategoryOption(
            ProjectCategory.LP,
            "Corp Site / LP",
            "コーポレートサイトや販促用ランディングページ制作。",
            100000,
        ),
    )

    features = (
        # Basic logic
        FeatureOption("auth", "会員管理・認証", "ログイン、会員ランク、権限管理", 60000),
        FeatureOption("db", "DB設計・構築", "顧客・商品データの複雑な管理", 80000),
        # Business logic
        FeatureOption("payment", "決済・サブスク", "Stripe/カード連携、継続課金", 120000),
        FeatureOption("search", "検索・絞り込み", "キーワード検索、フィルタリング", 70000),
        # Modern tech
        FeatureOption("ai", "生成AI連携 (LLM)", "ChatGPT API活用、自動応答", 250000),
        FeatureOption("analytics", "分析・KPI", "ダッシュボード、ログ解析", 80000),
        # Admin & ops
        FeatureOption("admin", "管理画面開発", "運営者用CMS、データ編集画面", 150000),
        FeatureOption("form", "高度なフォーム", "条件分岐、ファイル添付、自動通知", 40000),
        # Infra & renewal
        FeatureOption("migration", "データ移行", "旧システムからのデータ移管・整形", 200000),
        FeatureOption("infra", "クラウド構築", "AWS/GCP環境構築、冗長化", 100000),
        FeatureOption("legacy", "レガシー解析", "仕様書がない既存コードの解析", 150000),
        FeatureOption("api", "API開発連携", "外部システムやアプリとの連携API", 90000),
    )

    scales = (
        ScaleOption(ScaleTier.SMALL, "小規模 (~10画面)", "LP、MVP、シンプルな管理ツールなど", Decimal("1.0")),
        ScaleOption(ScaleTier.MEDIUM, "中規模 (10~30画面)", "一般的なWebサービス、コーポレートサイト", Decimal("1.6")),
        ScaleOption(ScaleTier.LARGE, "大規模 (30画面~)", "多機能なプラットフォーム、複雑な業務システム", Decimal("2.5")),
    )

    return validate_catalog(
        PricingCatalog(
            categories=categories,
            features=features,
            scales=scales,
            design_from_scratch_jpy=300000,
            monthly_maintenance_jpy=30000,
        )
    )
