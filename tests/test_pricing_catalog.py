from __future__ import annotations

import unittest
from dataclasses import replace
from decimal import Decimal

from pricing_catalog import (
    CatalogError,
    ProjectCategory,
    ScaleTier,
    load_default_catalog,
    validate_catalog,
)


class TestPricingCatalog(unittest.TestCase):
    def test_default_catalog_covers_every_enumerated_id(self) -> None:
        catalog = load_default_catalog()
        self.assertEqual(len(catalog.categories), 6)
        self.assertEqual(len(catalog.features), 12)
        self.assertEqual(set(catalog.category_base_price.keys()), set(ProjectCategory))
        self.assertEqual(set(catalog.scale_multiplier.keys()), set(ScaleTier))

    def test_published_prices(self) -> None:
        catalog = load_default_catalog()
        self.assertEqual(catalog.category_base_price[ProjectCategory.WEB], 400000)
        self.assertEqual(catalog.category_base_price[ProjectCategory.LP], 100000)
        self.assertEqual(catalog.feature_price["payment"], 120000)
        self.assertEqual(catalog.scale_multiplier[ScaleTier.MEDIUM], Decimal("1.6"))
        self.assertEqual(catalog.design_from_scratch_jpy, 300000)
        self.assertEqual(catalog.monthly_maintenance_jpy, 30000)

    def test_multipliers_increase_with_tier_size(self) -> None:
        catalog = load_default_catalog()
        multipliers = [s.multiplier for s in catalog.scales]
        self.assertEqual(multipliers, sorted(multipliers))
        self.assertGreaterEqual(multipliers[0], Decimal("1.0"))

    def test_lookup_accepts_plain_strings(self) -> None:
        catalog = load_default_catalog()
        self.assertEqual(catalog.category("app").id, ProjectCategory.APP)
        self.assertEqual(catalog.scale("large").id, ScaleTier.LARGE)
        self.assertEqual(catalog.feature_labels(("auth", "ai")), ("会員管理・認証", "生成AI連携 (LLM)"))

    def test_unknown_ids_raise_catalog_error(self) -> None:
        catalog = load_default_catalog()
        with self.assertRaises(CatalogError):
            catalog.category("desktop")
        with self.assertRaises(CatalogError):
            catalog.scale("huge")
        with self.assertRaises(CatalogError):
            catalog.feature("blockchain")

    def test_missing_category_entry_fails_validation(self) -> None:
        catalog = load_default_catalog()
        broken = replace(catalog, categories=catalog.categories[:-1])
        with self.assertRaises(CatalogError) as ctx:
            validate_catalog(broken)
        self.assertIn("lp", str(ctx.exception))

    def test_non_monotonic_multipliers_fail_validation(self) -> None:
        catalog = load_default_catalog()
        small, medium, large = catalog.scales
        broken = replace(catalog, scales=(small, replace(medium, multiplier=Decimal("3.0")), large))
        with self.assertRaises(CatalogError):
            validate_catalog(broken)

    def test_duplicate_feature_ids_fail_validation(self) -> None:
        catalog = load_default_catalog()
        broken = replace(catalog, features=catalog.features + (catalog.features[0],))
        with self.assertRaises(CatalogError):
            validate_catalog(broken)


if __name__ == "__main__":
    unittest.main()
