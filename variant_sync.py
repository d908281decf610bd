# ============================================================================
#  variant_sync.py — Variant Upsert
#  Version: 2.0.0
#  CHANGES: Key-matched updates, chunked bulk create, default-variant patch
# ============================================================================
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from errors import ShopifyUserError
from linked_options import LinkedOption, LinkedOptionSync
from models import (
    ProductNode,
    SourceRecord,
    VariantDescriptor,
    VariantInput,
    VariantOptionValue,
    VariantPatch,
    variant_grams,
    variant_price,
)
from resolver import NaturalKeyResolver, declared_option_order, variant_key
from text_utils import normalize_barcode

logger = logging.getLogger(__name__)

BULK_CREATE_LIMIT = 250


def _already_exists(error: Dict) -> bool:
    return "already exists" in str(error.get("message", "")).lower()


class VariantSync:
    def __init__(self, shop, resolver: NaturalKeyResolver, options: LinkedOptionSync, config):
        self.shop = shop
        self.resolver = resolver
        self.options = options
        self.config = config

    def upsert(self, product: ProductNode, record: SourceRecord) -> Tuple[ProductNode, Dict[str, LinkedOption]]:
        """
        Creates or updates every variant of the record on the product.

        Existing variants are matched by their key (ordered, normalized
        option values). Matches get a field patch; the rest go to one
        bulk create per 250 variants. Returns the re-read product and the
        linked options used to resolve option value identities.
        """
        order = record.option_order()
        if not order:
            self.patch_default_variant(product, record)
            return self.shop.get_product(product.id) or product, {}

        linked = self.options.sync(product, record)
        product = self.shop.get_product(product.id) or product
        # option1..3 and keys follow the store's option positions, not the source pair order
        order = declared_option_order(product) or order

        existing = self.resolver.variant_key_map(product, order)
        to_create: List[VariantInput] = []
        queued = set()
        updated = 0
        for variant in record.variants:
            values = self.resolver.desired_variant_values(product, variant, order, linked)
            key = variant_key(values)
            match = existing.get(key)
            if match is not None:
                self.shop.update_variant(match.legacy_id, self._patch(record, variant, values))
                updated += 1
            elif key in queued:
                logger.warning(f"Record {record.id}: duplicate variant combination '{key}' skipped")
            else:
                queued.add(key)
                to_create.append(self._input(record, variant, order, values))

        created = 0
        for start in range(0, len(to_create), BULK_CREATE_LIMIT):
            chunk = to_create[start:start + BULK_CREATE_LIMIT]
            nodes, errors = self.shop.bulk_create_variants(product.id, chunk)
            created += len(nodes)
            real = [e for e in errors if not _already_exists(e)]
            if len(real) < len(errors):
                logger.info(f"{product.id}: {len(errors) - len(real)} variant(s) already existed")
            if real:
                raise ShopifyUserError("productVariantsBulkCreate", real)

        logger.info(f"Variants for {product.id}: {updated} updated, {created} created")
        return self.shop.get_product(product.id) or product, linked

    def patch_default_variant(self, product: ProductNode, record: SourceRecord):
        """A product without options carries one implicit variant; patch it in place."""
        if not product.variants:
            logger.warning(f"{product.id}: no default variant to patch")
            return
        default = product.variants[0]
        patch = VariantPatch(
            sku=record.reference or None,
            price=variant_price(record, None, self.config.price_multiplier),
            barcode=normalize_barcode(record.barcode),
            taxable=record.taxable,
            grams=variant_grams(record, None),
            inventory_management="shopify" if self.config.track_inventory else None,
            inventory_policy=self.config.inventory_policy.lower(),
        )
        self.shop.update_variant(default.legacy_id, patch)
        logger.info(f"Default variant {default.legacy_id} patched (sku={patch.sku}, price={patch.price})")

    def _patch(self, record: SourceRecord, variant: VariantDescriptor, values: Sequence[str]) -> VariantPatch:
        opts: List[Optional[str]] = list(values) + [None] * (3 - len(values))
        return VariantPatch(
            sku=variant.sku or None,
            price=variant_price(record, variant, self.config.price_multiplier),
            barcode=normalize_barcode(variant.barcode),
            taxable=record.taxable,
            grams=variant_grams(record, variant),
            option1=opts[0],
            option2=opts[1],
            option3=opts[2],
            inventory_management="shopify" if self.config.track_inventory else None,
            inventory_policy=self.config.inventory_policy.lower(),
        )

    def _input(self, record: SourceRecord, variant: VariantDescriptor, order: Sequence[str], values: Sequence[str]) -> VariantInput:
        return VariantInput(
            sku=variant.sku or None,
            price=variant_price(record, variant, self.config.price_multiplier),
            barcode=normalize_barcode(variant.barcode),
            taxable=record.taxable,
            weight_grams=variant_grams(record, variant),
            tracked=self.config.track_inventory,
            inventory_policy=self.config.inventory_policy,
            option_values=[VariantOptionValue(option_name=n, name=v) for n, v in zip(order, values)],
        )
# ============================================================================
# End of variant_sync.py — Version: 2.0.0
# ============================================================================
