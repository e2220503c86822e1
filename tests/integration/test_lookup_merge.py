"""
Integration tests for lookup shapes against a live MongoDB.

Run with:
    MONGODB_URI="mongodb://localhost:27017/?replicaSet=rs0" pytest tests/integration -m integration
"""

import pytest

from docquery import insert_many, is_, many, one, one_merge_to, query

pytestmark = pytest.mark.integration


@pytest.fixture
async def orders(mongo_db):
    """Orders covering every one_merge_to outcome."""
    await insert_many(
        mongo_db,
        "images",
        [
            {"_id": "img-1", "ref_id": "p-single", "url": "single.png"},
            {"_id": "img-2", "ref_id": "p-many", "url": "first.png"},
            {"_id": "img-3", "ref_id": "p-many", "url": "second.png"},
        ],
    )
    await insert_many(
        mongo_db,
        "orders",
        [
            {"_id": 1, "label": "no-product"},
            {"_id": 2, "label": "no-image", "product": {"ref_id": "p-none", "name": "Mug"}},
            {"_id": 3, "label": "one-image", "product": {"ref_id": "p-single", "name": "Cup"}},
            {"_id": 4, "label": "many-images", "product": {"ref_id": "p-many", "name": "Pot"}},
            {"_id": 5, "label": "stale-image", "product": {"ref_id": "p-none", "name": "Jar", "thumb": {"url": "old.png"}}},
        ],
    )
    return mongo_db


class TestOneMergeTo:
    async def fetch(self, db):
        rows = await (
            query("orders")
            .lookup([one_merge_to("images", "product.ref_id", "ref_id", "thumb", "product")])
            .sort([("_id", 1)])
            .all(db, dict)
        )
        return {row["label"]: row for row in rows}

    async def test_parent_absent_stays_absent(self, orders):
        rows = await self.fetch(orders)
        assert "product" not in rows["no-product"]

    async def test_no_match_leaves_parent_unchanged(self, orders):
        rows = await self.fetch(orders)
        assert rows["no-image"]["product"] == {"ref_id": "p-none", "name": "Mug"}

    async def test_no_match_clears_stale_alias(self, orders):
        rows = await self.fetch(orders)
        assert rows["stale-image"]["product"] == {"ref_id": "p-none", "name": "Jar"}

    async def test_single_match_is_merged(self, orders):
        rows = await self.fetch(orders)
        assert rows["one-image"]["product"]["name"] == "Cup"
        assert rows["one-image"]["product"]["thumb"]["url"] == "single.png"

    async def test_many_matches_take_first(self, orders):
        rows = await self.fetch(orders)
        assert rows["many-images"]["product"]["thumb"]["url"] == "first.png"

    async def test_temporary_field_removed(self, orders):
        rows = await self.fetch(orders)
        for row in rows.values():
            assert not any(key.startswith("_product") for key in row)


class TestOneAndMany:
    async def test_one_keeps_unmatched_parent(self, orders):
        rows = await (
            query("images")
            .lookup([one("orders", "ref_id", "product.ref_id", "order")])
            .sort([("_id", 1)])
            .all(orders, dict)
        )
        assert [row["_id"] for row in rows] == ["img-1", "img-2", "img-3"]
        assert rows[0]["order"]["label"] == "one-image"
        assert isinstance(rows[1]["order"], dict)

    async def test_many_is_array(self, orders):
        order = await (
            query("orders")
            .filter([is_("_id", 4)])
            .lookup([many("images", "product.ref_id", "ref_id", "images")])
            .get_one(orders, dict)
        )
        assert sorted(image["url"] for image in order["images"]) == ["first.png", "second.png"]


class TestPaging:
    async def test_page_with_total(self, orders):
        page = await query("orders").sort([("_id", 1)]).get_per_page(orders, dict, page=1, size=3, with_total=True)
        assert [row["_id"] for row in page.items] == [4, 5]
        assert page.total_items == 5
        assert page.total_pages == 2
