"""
Unit tests for CollectionSync.

Run: pytest tests/unit/test_collection_sync.py -v
"""

from caches import CollectionCache
from collection_sync import CollectionSync
from models import CategoryDescriptor, CategoryText, CollectionEntry, ProductInput
from resolver import NaturalKeyResolver
from tests.fakes import FakeShopify


def make_sync(shop):
    cache = CollectionCache(shop.list_collections)
    return CollectionSync(shop, NaturalKeyResolver(shop, cache), cache, "it")


def category(cid, title, slug=""):
    return CategoryDescriptor(category_id=cid, by_locale={"it": CategoryText(title=title, slug=slug)})


class TestEnsureCollection:
    """Tests for CollectionSync.ensure_collection()"""

    def test_creates_missing_collection_and_caches_it(self):
        # Arrange
        shop = FakeShopify()
        sync = make_sync(shop)

        # Act
        first = sync.ensure_collection(category(7, "Lampade da Tavolo"))
        second = sync.ensure_collection(category(7, "Lampade da Tavolo"))

        # Assert
        assert first.handle == "lampade-da-tavolo_7"
        assert first.id == second.id
        assert shop.count("create_collection") == 1
        assert shop.count("list_collections") == 1

    def test_existing_collection_gets_new_title(self):
        shop = FakeShopify()
        shop.collections["sedie_8"] = CollectionEntry(id="gid://shopify/Collection/80", handle="sedie_8", title="Old")
        sync = make_sync(shop)

        entry = sync.ensure_collection(category(8, "Sedie Moderne", slug="sedie"))

        assert entry.id == "gid://shopify/Collection/80"
        assert shop.collections["sedie_8"].title == "Sedie Moderne"
        assert shop.count("create_collection") == 0

    def test_untitled_category_is_skipped(self):
        shop = FakeShopify()

        assert make_sync(shop).ensure_collection(category(9, "  ")) is None
        assert shop.calls == []


class TestEnsureCollect:
    """Tests for CollectionSync.ensure_collect()"""

    def test_collect_created_once(self):
        # Arrange
        shop = FakeShopify()
        sync = make_sync(shop)
        product = shop.create_product(ProductInput(title="P", handle="p"))
        entry = sync.ensure_collection(category(7, "Lampade"))

        # Act
        sync.ensure_collect(product, entry)
        sync.ensure_collect(product, entry)

        # Assert
        assert shop.count("create_collect") == 1
        assert shop.count("find_collect") == 1
        assert (product.legacy_id, entry.id) in shop.collects

    def test_duplicate_collect_422_is_benign(self, monkeypatch):
        """A 422 from collect creation means the link already exists."""
        # Arrange
        shop = FakeShopify()
        sync = make_sync(shop)
        product = shop.create_product(ProductInput(title="P", handle="p"))
        entry = sync.ensure_collection(category(7, "Lampade"))
        shop.collects.add((product.legacy_id, entry.id))
        monkeypatch.setattr(shop, "find_collect", lambda pid, cid: False)

        # Act / Assert: no exception
        sync.ensure_collect(product, entry)
