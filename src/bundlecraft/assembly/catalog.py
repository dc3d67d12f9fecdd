"""Catalog context parsing."""

from __future__ import annotations

from typing import Any

from bundlecraft.core.models import CatalogContext, Collection, Product


def _entry_id(raw: Any) -> str | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (str, int)):
        text = str(raw).strip()
        return text or None
    return None


def _entry_text(raw: Any) -> str | None:
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def parse_catalog(raw: Any) -> CatalogContext | None:
    """Build a CatalogContext from ``{collections: [...], products: [...]}``.

    Returns None when the catalog is absent altogether (None or not a
    mapping), which the engine treats as a caller contract violation once a
    step needs matching. Malformed entries are skipped and counted.
    """
    if isinstance(raw, CatalogContext):
        return raw
    if not isinstance(raw, dict):
        return None

    skipped = 0
    collections: list[Collection] = []
    raw_collections = raw.get("collections") or []
    if not isinstance(raw_collections, list):
        skipped += 1
        raw_collections = []
    for item in raw_collections:
        if not isinstance(item, dict):
            skipped += 1
            continue
        cid = _entry_id(item.get("id"))
        title = _entry_text(item.get("title"))
        if cid is None or title is None:
            skipped += 1
            continue
        collections.append(Collection(id=cid, title=title))

    products: list[Product] = []
    raw_products = raw.get("products") or []
    if not isinstance(raw_products, list):
        skipped += 1
        raw_products = []
    for item in raw_products:
        if not isinstance(item, dict):
            skipped += 1
            continue
        pid = _entry_id(item.get("id"))
        product_type = _entry_text(item.get("productType"))
        if pid is None or product_type is None:
            skipped += 1
            continue
        products.append(Product(id=pid, product_type=product_type, title=_entry_text(item.get("title")) or ""))

    return CatalogContext(
        collections=tuple(collections),
        products=tuple(products),
        skipped_entries=skipped,
    )


def parse_collections(text: str) -> list[dict[str, str]]:
    """Parse comma-separated collection titles into catalog entries.

    >>> parse_collections("Shirts, Pants")
    [{'id': 'col_1', 'title': 'Shirts'}, {'id': 'col_2', 'title': 'Pants'}]
    """
    if not text or not text.strip():
        return []
    titles = [t.strip() for t in text.split(",") if t.strip()]
    return [{"id": f"col_{i}", "title": title} for i, title in enumerate(titles, start=1)]


def parse_products(text: str) -> list[dict[str, str]]:
    """Parse comma-separated product types into catalog entries."""
    if not text or not text.strip():
        return []
    types = [t.strip() for t in text.split(",") if t.strip()]
    return [{"id": f"p_{i}", "productType": ptype} for i, ptype in enumerate(types, start=1)]
