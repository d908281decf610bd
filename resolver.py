# ============================================================================
#  resolver.py — Natural-Key Resolver
#  Version: 2.0.0
#  CHANGES: Handle, collection, option-value and variant-key resolution
# ============================================================================
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

from caches import CollectionCache
from models import CollectionEntry, OptionValueNode, ProductNode, ProductOptionNode, VariantDescriptor, VariantNode
from text_utils import normalize_label

if TYPE_CHECKING:
    from linked_options import LinkedOption

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "||"


def variant_key(values: Iterable[str]) -> str:
    return KEY_SEPARATOR.join(normalize_label(v) for v in values)


def declared_option_order(product: ProductNode) -> List[str]:
    """Option names in the product's declared order (by position)."""
    return [o.name for o in sorted(product.options, key=lambda o: o.position)]


def existing_variant_key(variant: VariantNode, option_order: Sequence[str]) -> str:
    """Key of a variant already on the store, from its currently selected option values."""
    by_name = {normalize_label(o.name): o.value for o in variant.selected_options}
    return variant_key(by_name.get(normalize_label(name), "") for name in option_order)


def resolve_option_value(
    option: ProductOptionNode,
    label: str,
    metaobject_id: Optional[str] = None,
    linked_order: Optional[List[str]] = None,
) -> Optional[OptionValueNode]:
    """
    Finds the option value a source label corresponds to.

    Order of preference:
      1. linkedMetafieldValue == metaobject id (structured identity)
      2. position of the metaobject id in the linked list, when the store
         does not expose linkedMetafieldValue
      3. case/whitespace-insensitive name match

    Duplicate labels are ambiguous; the first value in option order wins.
    """
    if metaobject_id:
        for value in option.values:
            if value.linked_metafield_value == metaobject_id:
                return value
        exposes_links = any(v.linked_metafield_value for v in option.values)
        if linked_order and not exposes_links and metaobject_id in linked_order:
            idx = linked_order.index(metaobject_id)
            if idx < len(option.values):
                return option.values[idx]
    wanted = normalize_label(label)
    for value in option.values:
        if normalize_label(value.name) == wanted:
            return value
    return None


class NaturalKeyResolver:
    def __init__(self, shop, collections: CollectionCache):
        self.shop = shop
        self.collections = collections

    def resolve(self, kind: str, natural_key: Any) -> Optional[str]:
        """
        Returns the existing target id for a natural key, or None (create).

        kind: "product" (handle), "collection" (handle),
        "variant" ((product_id, ordered option values)),
        "option_value" ((metaobject type, metaobject handle)).
        """
        if kind == "product":
            product = self.resolve_product(natural_key)
            return product.id if product else None
        if kind == "collection":
            entry = self.resolve_collection(natural_key)
            return entry.id if entry else None
        if kind == "variant":
            product_id, values = natural_key
            product = self.shop.get_product(product_id)
            if product is None:
                return None
            match = self.variant_key_map(product, declared_option_order(product)).get(variant_key(values))
            return match.id if match else None
        if kind == "option_value":
            type_, handle = natural_key
            return self.shop.metaobject_by_handle(type_, handle)
        raise ValueError(f"Unknown natural key kind: {kind}")

    def resolve_product(self, handle: str) -> Optional[ProductNode]:
        product = self.shop.find_product_by_handle(handle)
        if product is None:
            logger.info(f"No product with handle '{handle}': create")
        return product

    def resolve_collection(self, handle: str) -> Optional[CollectionEntry]:
        return self.collections.get(handle)

    def variant_key_map(self, product: ProductNode, option_order: Sequence[str]) -> Dict[str, VariantNode]:
        """key -> existing variant, in the canonical option order."""
        keyed: Dict[str, VariantNode] = {}
        for variant in product.variants:
            key = existing_variant_key(variant, option_order)
            if key in keyed:
                logger.warning(f"Duplicate variant key '{key}' on {product.id}: keeping {keyed[key].id}")
                continue
            keyed[key] = variant
        return keyed

    def desired_variant_values(
        self,
        product: ProductNode,
        variant: VariantDescriptor,
        option_order: Sequence[str],
        linked: Optional[Dict[str, "LinkedOption"]] = None,
    ) -> List[str]:
        """Current display value per option, resolved through the option value identity."""
        linked = linked or {}
        values: List[str] = []
        for name in option_order:
            pair = variant.value_for(name)
            label = pair.value if pair else ""
            option = product.option_named(name)
            node = None
            if option is not None:
                lo = linked.get(normalize_label(name))
                metaobject_id = lo.value_ids.get(normalize_label(label)) if lo else None
                node = resolve_option_value(option, label, metaobject_id, lo.ordered_ids if lo else None)
            values.append(node.name if node else label)
        return values

    def desired_variant_key(
        self,
        product: ProductNode,
        variant: VariantDescriptor,
        option_order: Sequence[str],
        linked: Optional[Dict[str, "LinkedOption"]] = None,
    ) -> str:
        return variant_key(self.desired_variant_values(product, variant, option_order, linked))
# ============================================================================
# End of resolver.py — Version: 2.0.0
# ============================================================================
