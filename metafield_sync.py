# ============================================================================
#  metafield_sync.py — Product and Variant Metafields
#  Version: 2.0.0
#  CHANGES: Source metafields, feature metafields with translations,
#           variant swatch textures, attachment file lists
# ============================================================================
import json
import logging
from typing import Dict, List, Optional

from file_uploads import FileUploader
from models import MetafieldInput, ProductNode, SourceRecord
from resolver import NaturalKeyResolver, declared_option_order
from text_utils import metafield_key_from_label

logger = logging.getLogger(__name__)

VALUE_SEPARATOR = " / "


class MetafieldSync:
    def __init__(self, shop, files: FileUploader, config, translations=None):
        self.shop = shop
        self.files = files
        self.namespace = config.metafield_namespace
        self.primary_locale = config.primary_locale
        self.translations = translations
        self._definition_keys: Optional[set] = None

    def ensure_definitions(self, definitions: Dict[str, Dict[str, str]]):
        """key -> {"name", "type"}; created once per process in the metafield namespace."""
        if self._definition_keys is None:
            self._definition_keys = {d["key"] for d in self.shop.metafield_definitions("PRODUCT", self.namespace)}
        for key, definition in definitions.items():
            if key in self._definition_keys:
                continue
            self.shop.create_metafield_definition({
                "name": definition["name"],
                "namespace": self.namespace,
                "key": key,
                "ownerType": "PRODUCT",
                "type": definition["type"],
            })
            self._definition_keys.add(key)
            logger.info(f"Metafield definition created: {self.namespace}.{key} ({definition['type']})")

    def set_source_metafields(self, product: ProductNode, record: SourceRecord) -> int:
        entries = [
            MetafieldInput(owner_id=product.id, namespace=self.namespace, key="source_id",
                           type="single_line_text_field", value=str(record.id)),
        ]
        if record.reference:
            entries.append(MetafieldInput(owner_id=product.id, namespace=self.namespace, key="source_reference",
                                          type="single_line_text_field", value=record.reference))
        short = record.short_description_plain(self.primary_locale)
        if short:
            entries.append(MetafieldInput(owner_id=product.id, namespace="custom", key="description_short",
                                          type="multi_line_text_field", value=short))
        self.shop.metafields_set(entries)
        return len(entries)

    def sync_features(self, product: ProductNode, record: SourceRecord) -> int:
        """One single-line text metafield per feature, values joined with ' / '."""
        if not record.features:
            return 0
        definitions: Dict[str, Dict[str, str]] = {}
        entries: List[MetafieldInput] = []
        translated: Dict[str, Dict[str, str]] = {}
        for feature in record.features:
            label = feature.names.get(self.primary_locale) or next(iter(feature.names.values()), "")
            values = feature.values.get(self.primary_locale) or next(iter(feature.values.values()), [])
            if not values:
                continue
            key = metafield_key_from_label(label, feature.feature_id)
            definitions[key] = {"name": label or key, "type": "single_line_text_field"}
            entries.append(MetafieldInput(owner_id=product.id, namespace=self.namespace, key=key,
                                          type="single_line_text_field", value=VALUE_SEPARATOR.join(values)))
            translated[key] = {
                loc: VALUE_SEPARATOR.join(vals)
                for loc, vals in feature.values.items()
                if loc != self.primary_locale and vals
            }
        if not entries:
            return 0
        self.ensure_definitions(definitions)
        self.shop.metafields_set(entries)

        if self.translations is not None and any(translated.values()):
            ids = {m["key"]: m["id"] for m in self.shop.read_metafields(product.id, self.namespace)}
            for key, by_locale in translated.items():
                if key in ids and by_locale:
                    self.translations.translate_metafield(ids[key], by_locale)
        logger.info(f"{product.id}: {len(entries)} feature metafield(s) set")
        return len(entries)

    def sync_textures(self, product: ProductNode, record: SourceRecord, resolver: NaturalKeyResolver, linked=None) -> int:
        """swatch.texture file_reference on every variant whose color value has a texture image."""
        if not record.option_order():
            return 0
        order = declared_option_order(product) or record.option_order()
        keyed = resolver.variant_key_map(product, order)
        entries: List[MetafieldInput] = []
        for variant in record.variants:
            url = next((p.meta.texture_url for p in variant.options if p.meta.texture_url), None)
            if not url:
                continue
            node = keyed.get(resolver.desired_variant_key(product, variant, order, linked))
            if node is None:
                logger.warning(f"Texture for variant '{variant.sku}' skipped: variant not on {product.id}")
                continue
            file_id = self.files.ensure_file_from_url(url, "IMAGE")
            entries.append(MetafieldInput(owner_id=node.id, namespace="swatch", key="texture",
                                          type="file_reference", value=file_id))
        if entries:
            self.shop.metafields_set(entries)
        return len(entries)

    def sync_attachments(self, product: ProductNode, record: SourceRecord) -> int:
        if not record.attachments:
            return 0
        file_ids = [self.files.ensure_attachment(a) for a in record.attachments]
        self.ensure_definitions({"attachments": {"name": "Attachments", "type": "list.file_reference"}})
        self.shop.metafields_set([
            MetafieldInput(owner_id=product.id, namespace=self.namespace, key="attachments",
                           type="list.file_reference", value=json.dumps(file_ids)),
        ])
        return len(file_ids)
# ============================================================================
# End of metafield_sync.py — Version: 2.0.0
# ============================================================================
