"""Tests for catalog context parsing."""

from __future__ import annotations

from bundlecraft import assemble
from bundlecraft.assembly.catalog import parse_catalog, parse_collections, parse_products
from bundlecraft.core.models import CatalogContext, Collection, Product


class TestParseCatalog:
    def test_none_is_missing(self):
        assert parse_catalog(None) is None

    def test_non_mapping_is_missing(self):
        assert parse_catalog(["Shirts"]) is None

    def test_empty_mapping_is_empty_catalog(self):
        catalog = parse_catalog({})
        assert catalog is not None
        assert catalog.is_empty

    def test_passthrough(self):
        catalog = CatalogContext(collections=(Collection("c1", "Shirts"),))
        assert parse_catalog(catalog) is catalog

    def test_entries(self, catalog):
        parsed = parse_catalog(catalog)
        assert parsed.collections[0] == Collection(id="c1", title="Shirts")
        assert parsed.products[0] == Product(id="p1", product_type="Hat")
        assert parsed.skipped_entries == 0

    def test_malformed_entries_skipped(self):
        parsed = parse_catalog({
            "collections": [
                {"id": "c1", "title": "Shirts"},
                {"id": "c2"},
                "Pants",
                {"id": True, "title": "Flags"},
            ],
            "products": [{"id": 7, "productType": "Hat"}, {"id": "p2", "productType": "  "}],
        })
        assert [c.id for c in parsed.collections] == ["c1"]
        assert parsed.products == (Product(id="7", product_type="Hat"),)
        assert parsed.skipped_entries == 4

    def test_skipped_entries_raise_flag(self, single_step_structure):
        result = assemble(single_step_structure, None, None, {
            "collections": [{"id": "c1", "title": "Shirts"}, {"title": "No id"}],
            "products": [],
        })
        assert result.flags["invalidCatalogEntry"] is True
        assert result.bundle_config.steps[0].categories[0].id == "c1"

    def test_clean_catalog_raises_no_entry_flag(self, single_step_structure, catalog):
        result = assemble(single_step_structure, None, None, catalog)
        assert "invalidCatalogEntry" not in result.raised_flags

    def test_to_dict(self):
        catalog = CatalogContext(
            collections=(Collection("c1", "Shirts"),),
            products=(Product("p1", "Hat", title="Red Hat"),),
        )
        assert catalog.to_dict() == {
            "collections": [{"id": "c1", "title": "Shirts"}],
            "products": [{"id": "p1", "productType": "Hat", "title": "Red Hat"}],
        }


class TestCommaLists:
    def test_collections(self):
        assert parse_collections("Shirts, , Pants") == [
            {"id": "col_1", "title": "Shirts"},
            {"id": "col_2", "title": "Pants"},
        ]

    def test_products(self):
        assert parse_products("Hat,Scarf") == [
            {"id": "p_1", "productType": "Hat"},
            {"id": "p_2", "productType": "Scarf"},
        ]

    def test_empty(self):
        assert parse_collections("") == []
        assert parse_products("   ") == []
