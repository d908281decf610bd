# ============================================================================
#  linked_options.py — Metaobject-Backed Option Values
#  Version: 2.0.0
#  CHANGES: Per-vendor metaobject definitions, list.metaobject_reference
#           product metafields, option create / value add
# ============================================================================
import json
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models import MetafieldInput, OptionCreateInput, OptionValueInput, OptionPair, ProductNode, SourceRecord
from resolver import resolve_option_value
from text_utils import normalize_label, slug_key

logger = logging.getLogger(__name__)

METAOBJECT_FIELDS = [
    {"key": "label", "name": "Label", "type": "single_line_text_field"},
    {"key": "color", "name": "Color", "type": "color"},
    {"key": "source_id", "name": "Source id", "type": "single_line_text_field"},
]


class LinkedOption(BaseModel):
    """One product option whose values are metaobject entries."""
    name: str
    namespace: str
    key: str
    metaobject_type: str
    value_ids: Dict[str, str] = Field(default_factory=dict)   # normalized label -> metaobject gid
    ordered_ids: List[str] = Field(default_factory=list)


def entry_handle(pair: OptionPair) -> str:
    base = slug_key(pair.value)
    return f"{base}_{pair.meta.value_id}" if pair.meta.value_id else base


class LinkedOptionSync:
    """Creates the metaobjects behind option values and the options themselves."""

    def __init__(self, shop, namespace: str = "linked"):
        self.shop = shop
        self.namespace = namespace
        self._definitions: Dict[str, str] = {}
        self._metafield_keys: Optional[set] = None
        self._entries: Dict[tuple, str] = {}

    @staticmethod
    def is_linkable(record: SourceRecord, option_name: str) -> bool:
        values = record.option_values(option_name)
        return bool(values) and all(p.meta.value_id for p in values)

    # ------------------------------------------------------------------
    # Definitions and entries
    # ------------------------------------------------------------------
    def ensure_definition(self, type_: str, name: str) -> str:
        if type_ in self._definitions:
            return self._definitions[type_]
        existing = self.shop.metaobject_definition_by_type(type_)
        if existing is None:
            def_id = self.shop.create_metaobject_definition(type_, name, METAOBJECT_FIELDS)
            logger.info(f"Metaobject definition created: {type_} -> {def_id}")
        else:
            def_id = existing["id"]
            missing = [f for f in METAOBJECT_FIELDS if f["key"] not in existing.get("fields", [])]
            if missing:
                self.shop.add_metaobject_fields(def_id, missing)
                logger.info(f"Metaobject definition {type_}: added fields {[f['key'] for f in missing]}")
        self._definitions[type_] = def_id
        return def_id

    def ensure_metafield_definition(self, key: str, name: str, definition_id: str):
        if self._metafield_keys is None:
            self._metafield_keys = {d["key"] for d in self.shop.metafield_definitions("PRODUCT", self.namespace)}
        if key in self._metafield_keys:
            return
        self.shop.create_metafield_definition({
            "name": name,
            "namespace": self.namespace,
            "key": key,
            "ownerType": "PRODUCT",
            "type": "list.metaobject_reference",
            "validations": [{"name": "metaobject_definition_id", "value": definition_id}],
        })
        self._metafield_keys.add(key)

    def ensure_entry(self, type_: str, pair: OptionPair) -> str:
        handle = entry_handle(pair)
        cache_key = (type_, handle)
        if cache_key in self._entries:
            return self._entries[cache_key]
        gid = self.shop.metaobject_by_handle(type_, handle)
        if gid is None:
            fields = {"label": pair.value, "source_id": str(pair.meta.value_id or "")}
            if pair.meta.is_color and pair.meta.color and pair.meta.color.startswith("#"):
                fields["color"] = pair.meta.color
            gid = self.shop.create_metaobject(type_, handle, fields)
        self._entries[cache_key] = gid
        return gid

    def ensure_values(self, record: SourceRecord, option_name: str) -> LinkedOption:
        vendor = slug_key(record.brand or "vendor")
        type_ = f"opt_{vendor}"[:64]
        key = f"{vendor}_{slug_key(option_name)}"[:64]
        definition_id = self.ensure_definition(type_, record.brand or vendor)
        self.ensure_metafield_definition(key, f"{record.brand} {option_name}".strip(), definition_id)
        linked = LinkedOption(name=option_name, namespace=self.namespace, key=key, metaobject_type=type_)
        for pair in record.option_values(option_name):
            gid = self.ensure_entry(type_, pair)
            linked.value_ids[normalize_label(pair.value)] = gid
            if gid not in linked.ordered_ids:
                linked.ordered_ids.append(gid)
        return linked

    # ------------------------------------------------------------------
    # Product options
    # ------------------------------------------------------------------
    def sync(self, product: ProductNode, record: SourceRecord) -> Dict[str, LinkedOption]:
        """
        Makes the product's options carry every value the record's variants use.

        Returns the linked options keyed by normalized option name. The caller
        must re-read the product afterwards to see the new option values.
        """
        order = record.option_order()
        linked: Dict[str, LinkedOption] = {}
        for name in order:
            if self.is_linkable(record, name):
                linked[normalize_label(name)] = self.ensure_values(record, name)

        if linked:
            self._set_reference_lists(product, linked)

        to_create: List[OptionCreateInput] = []
        for position, name in enumerate(order, start=1):
            option = product.option_named(name)
            lo = linked.get(normalize_label(name))
            if option is None:
                to_create.append(OptionCreateInput(
                    name=name,
                    position=position,
                    values=[p.value for p in record.option_values(name)],
                    linked_namespace=lo.namespace if lo else None,
                    linked_key=lo.key if lo else None,
                    linked_values=list(lo.ordered_ids) if lo else [],
                ))
                continue
            missing = self._missing_values(option, record, name, lo)
            if missing:
                logger.info(f"Option '{name}' on {product.id}: adding {len(missing)} value(s)")
                self.shop.add_option_values(product.id, option.id, missing)

        if to_create:
            logger.info(f"Creating options {[o.name for o in to_create]} on {product.id}")
            self.shop.create_options(product.id, to_create)
        return linked

    def _set_reference_lists(self, product: ProductNode, linked: Dict[str, LinkedOption]):
        # linked options must already have their values in the product metafield
        entries = []
        for lo in linked.values():
            ids = list(lo.ordered_ids)
            option = product.option_named(lo.name)
            if option is not None:
                ids += [v.linked_metafield_value for v in option.values
                        if v.linked_metafield_value and v.linked_metafield_value not in ids]
            entries.append(MetafieldInput(
                owner_id=product.id,
                namespace=lo.namespace,
                key=lo.key,
                type="list.metaobject_reference",
                value=json.dumps(ids),
            ))
        self.shop.metafields_set(entries)

    @staticmethod
    def _missing_values(option, record: SourceRecord, name: str, lo: Optional[LinkedOption]) -> List[OptionValueInput]:
        missing: List[OptionValueInput] = []
        for pair in record.option_values(name):
            metaobject_id = lo.value_ids.get(normalize_label(pair.value)) if lo else None
            if resolve_option_value(option, pair.value, metaobject_id) is not None:
                continue
            if metaobject_id:
                missing.append(OptionValueInput(linked_metafield_value=metaobject_id))
            else:
                missing.append(OptionValueInput(name=pair.value))
        return missing
# ============================================================================
# End of linked_options.py — Version: 2.0.0
# ============================================================================
