# ============================================================================
#  translation_sync.py — Locale Translations
#  Version: 2.0.0
#  CHANGES: Digest-based translationsRegister for products, options,
#           option values, variant titles, collections and metafields
# ============================================================================
import logging
from typing import TYPE_CHECKING, Dict, Optional

from models import CategoryDescriptor, CollectionEntry, ProductNode, SourceRecord, TranslationInput
from resolver import resolve_option_value
from text_utils import normalize_label, product_handle

if TYPE_CHECKING:
    from linked_options import LinkedOption

logger = logging.getLogger(__name__)


class TranslationSync:
    def __init__(self, shop, primary_locale: str):
        self.shop = shop
        self.primary_locale = primary_locale

    def register(self, resource_id: str, by_locale: Dict[str, Dict[str, str]]) -> int:
        """Registers {locale: {key: value}} against the resource's current digests."""
        wanted = {loc: {k: v for k, v in values.items() if v} for loc, values in by_locale.items()}
        wanted = {loc: values for loc, values in wanted.items() if values and loc != self.primary_locale}
        if not wanted:
            return 0
        digests = self.shop.translatable_digests(resource_id)
        count = 0
        for locale, values in wanted.items():
            translations = [
                TranslationInput(key=key, value=value, locale=locale, translatable_content_digest=digests[key])
                for key, value in values.items()
                if key in digests
            ]
            skipped = [key for key in values if key not in digests]
            if skipped:
                logger.debug(f"{resource_id} [{locale}]: no digest for {skipped}")
            if translations:
                self.shop.register_translations(resource_id, translations)
                count += len(translations)
        return count

    def translate_product(self, product: ProductNode, record: SourceRecord) -> int:
        by_locale = {}
        for locale, texts in record.texts.items():
            by_locale[locale] = {
                "title": texts.name,
                "body_html": texts.description,
                "handle": product_handle(texts.slug or texts.name, record.id) if (texts.slug or texts.name) else "",
                "meta_title": texts.meta_title,
                "meta_description": texts.meta_description,
            }
        count = self.register(product.id, by_locale)
        logger.info(f"{product.id}: {count} product translation(s) registered")
        return count

    def translate_options(self, product: ProductNode, record: SourceRecord, linked: Optional[Dict[str, "LinkedOption"]] = None) -> int:
        """Option names, option values (or their metaobject labels) and variant titles."""
        linked = linked or {}
        count = 0
        for name in record.option_order():
            option = product.option_named(name)
            if option is None:
                continue
            pairs = record.option_values(name)
            names_by_locale: Dict[str, Dict[str, str]] = {}
            for pair in pairs:
                for locale, translated in pair.names_by_locale.items():
                    names_by_locale.setdefault(locale, {"name": translated})
            count += self.register(option.id, names_by_locale)

            lo = linked.get(normalize_label(name))
            for pair in pairs:
                if not pair.values_by_locale:
                    continue
                metaobject_id = lo.value_ids.get(normalize_label(pair.value)) if lo else None
                node = resolve_option_value(option, pair.value, metaobject_id, lo.ordered_ids if lo else None)
                if node is None:
                    continue
                if node.linked_metafield_value:
                    resource, key = node.linked_metafield_value, "label"
                else:
                    resource, key = node.id, "name"
                count += self.register(resource, {loc: {key: v} for loc, v in pair.values_by_locale.items()})

        by_sku = {v.sku: v for v in product.variants if v.sku}
        for variant in record.variants:
            node = by_sku.get(variant.sku) if variant.sku else None
            if node is None or not variant.titles_by_locale:
                continue
            count += self.register(node.id, {loc: {"title": t} for loc, t in variant.titles_by_locale.items()})
        return count

    def translate_collection(self, entry: CollectionEntry, category: CategoryDescriptor) -> int:
        by_locale = {
            locale: {
                "title": text.title,
                "handle": product_handle(text.slug or text.title, category.category_id),
            }
            for locale, text in category.by_locale.items()
        }
        return self.register(entry.id, by_locale)

    def translate_metafield(self, metafield_id: str, by_locale: Dict[str, str]) -> int:
        return self.register(metafield_id, {loc: {"value": v} for loc, v in by_locale.items()})
# ============================================================================
# End of translation_sync.py — Version: 2.0.0
# ============================================================================
