# ============================================================================
#  collection_sync.py — Collections from Source Categories
#  Version: 2.0.0
#  CHANGES: Cache-backed find-or-create, title refresh, idempotent collects
# ============================================================================
import logging
from typing import Optional

from caches import CollectionCache, SeenSet
from errors import TransportError
from models import CategoryDescriptor, CollectionEntry, ProductNode, SourceRecord
from resolver import NaturalKeyResolver
from text_utils import legacy_id, product_handle

logger = logging.getLogger(__name__)


class CollectionSync:
    def __init__(self, shop, resolver: NaturalKeyResolver, cache: CollectionCache, primary_locale: str, translations=None):
        self.shop = shop
        self.resolver = resolver
        self.cache = cache
        self.primary_locale = primary_locale
        self.translations = translations
        self._collects = SeenSet()

    def collection_handle(self, category: CategoryDescriptor) -> Optional[str]:
        text = category.by_locale.get(self.primary_locale) or next(iter(category.by_locale.values()), None)
        if text is None or not text.title.strip():
            return None
        return product_handle(text.slug or text.title, category.category_id)

    def ensure_collection(self, category: CategoryDescriptor) -> Optional[CollectionEntry]:
        handle = self.collection_handle(category)
        if handle is None:
            logger.warning(f"Category {category.category_id} has no title: skipped")
            return None
        text = category.by_locale.get(self.primary_locale) or next(iter(category.by_locale.values()))
        entry = self.resolver.resolve_collection(handle)
        if entry is None:
            entry = self.shop.create_collection(text.title, handle)
            self.cache.add(entry)
            logger.info(f"Collection created: {handle} -> {entry.id}")
        elif entry.title != text.title:
            self.shop.update_collection(entry.id, text.title)
            entry.title = text.title
            logger.info(f"Collection {handle} renamed to '{text.title}'")
        return entry

    def ensure_collect(self, product: ProductNode, entry: CollectionEntry):
        key = f"{product.legacy_id}:{legacy_id(entry.id)}"
        if key in self._collects:
            return
        if not self.shop.find_collect(product.legacy_id, entry.id):
            try:
                self.shop.create_collect(product.legacy_id, entry.id)
            except TransportError as e:
                # already linked by a concurrent or earlier run
                if e.status != 422:
                    raise
                logger.info(f"Collect {key} already exists")
        self._collects.add(key)

    def sync(self, product: ProductNode, record: SourceRecord) -> int:
        linked = 0
        for category in record.categories:
            entry = self.ensure_collection(category)
            if entry is None:
                continue
            self.ensure_collect(product, entry)
            if self.translations is not None:
                self.translations.translate_collection(entry, category)
            linked += 1
        return linked
# ============================================================================
# End of collection_sync.py — Version: 2.0.0
# ============================================================================
