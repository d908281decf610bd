"""
In-memory Shopify used by the engine tests.

FakeShopify implements the typed operations of ShopifyClient with just
enough platform behaviour to check idempotence: handles are unique, a new
product carries one "Default Title" variant, creating options converts
that variant, linked option values take their name from the metaobject
label, duplicate variant combinations are rejected with "already exists",
and items must be stocked at a location before quantities can be set.
"""

import itertools
from typing import Dict, List, Optional, Tuple

from errors import ShopifyUserError, TransportError
from models import (
    CollectionEntry,
    InventoryQuantityInput,
    MetafieldInput,
    OptionCreateInput,
    OptionValueInput,
    OptionValueNode,
    ProductInput,
    ProductNode,
    ProductOptionNode,
    ProductUpdate,
    SelectedOption,
    StagedTarget,
    StagedUploadInput,
    TranslationInput,
    VariantInput,
    VariantNode,
    VariantPatch,
)
from text_utils import legacy_id

NOT_STOCKED = "ITEM_NOT_STOCKED_AT_LOCATION"
DIGEST_KEYS = ("title", "body_html", "handle", "meta_title", "meta_description", "name", "label", "value")


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeShopify:
    def __init__(self):
        self._ids = itertools.count(1)
        self.products: Dict[str, dict] = {}
        self.metaobject_defs: Dict[str, dict] = {}
        self.metaobjects: Dict[str, dict] = {}
        self.metafield_defs: List[dict] = []
        self.metafields: Dict[Tuple[str, str, str], dict] = {}
        self.collections: Dict[str, CollectionEntry] = {}
        self.collects = set()
        self.files: Dict[str, dict] = {}
        self.failing_sources = set()
        self.staged_uploads: List[str] = []
        self.redirects: Dict[str, str] = {}
        self.translations: List[Tuple[str, TranslationInput]] = []
        self.published: List[Tuple[str, str]] = []
        self.stocked = set()
        self.levels: Dict[Tuple[str, str], int] = {}
        self.calls: List[str] = []
        self.fail_on: Dict[str, Exception] = {}

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _hit(self, name: str):
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def _next(self) -> int:
        return next(self._ids)

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def _new_variant(self, selected: Dict[str, str], sku: Optional[str] = None, price: str = "0.00") -> dict:
        vid = self._next()
        return {
            "id": f"gid://shopify/ProductVariant/{vid}",
            "legacy_id": vid,
            "sku": sku,
            "price": price,
            "barcode": None,
            "selected": dict(selected),
            "inventory_item_id": f"gid://shopify/InventoryItem/{vid}",
        }

    def _node(self, product: dict) -> ProductNode:
        options = [
            ProductOptionNode(
                id=o["id"], name=o["name"], position=o["position"],
                values=[OptionValueNode(id=v["id"], name=v["name"], linked_metafield_value=v.get("linked"))
                        for v in o["values"]],
                linked_namespace=o.get("namespace"), linked_key=o.get("key"),
            )
            for o in product["options"]
        ]
        variants = [
            VariantNode(
                id=v["id"], legacy_id=v["legacy_id"], sku=v["sku"],
                title=" / ".join(v["selected"].values()),
                selected_options=[SelectedOption(name=k, value=val) for k, val in v["selected"].items()],
                inventory_item_id=v["inventory_item_id"],
            )
            for v in product["variants"]
        ]
        return ProductNode(id=product["id"], legacy_id=product["legacy_id"], handle=product["handle"],
                           title=product["title"], options=options, variants=variants,
                           image_count=len(product["images"]))

    def _by_legacy(self, legacy: int) -> dict:
        for product in self.products.values():
            if product["legacy_id"] == legacy:
                return product
        raise TransportError(404, f"products/{legacy}.json", "Not Found")

    def _variant(self, legacy: int) -> Tuple[dict, dict]:
        for product in self.products.values():
            for variant in product["variants"]:
                if variant["legacy_id"] == legacy:
                    return product, variant
        raise TransportError(404, f"variants/{legacy}.json", "Not Found")

    def _value(self, value: OptionValueInput, fallback: str = "") -> dict:
        if value.linked_metafield_value:
            label = self.metaobjects[value.linked_metafield_value]["fields"].get("label", fallback)
            return {"id": f"gid://shopify/ProductOptionValue/{self._next()}", "name": label,
                    "linked": value.linked_metafield_value}
        return {"id": f"gid://shopify/ProductOptionValue/{self._next()}", "name": value.name, "linked": None}

    def all_variants(self) -> List[dict]:
        return [v for p in self.products.values() for v in p["variants"]]

    def rename_metaobject_label(self, metaobject_id: str, label: str):
        """Change a linked value's display label the way a merchant edit would."""
        self.metaobjects[metaobject_id]["fields"]["label"] = label
        for product in self.products.values():
            for option in product["options"]:
                for value in option["values"]:
                    if value.get("linked") == metaobject_id:
                        old = value["name"]
                        value["name"] = label
                        for variant in product["variants"]:
                            if variant["selected"].get(option["name"]) == old:
                                variant["selected"][option["name"]] = label

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    def find_product_by_handle(self, handle: str) -> Optional[ProductNode]:
        self._hit("find_product_by_handle")
        for product in self.products.values():
            if product["handle"] == handle:
                return self._node(product)
        return None

    def get_product(self, product_id: str) -> Optional[ProductNode]:
        self._hit("get_product")
        product = self.products.get(product_id)
        return self._node(product) if product else None

    def create_product(self, product: ProductInput) -> ProductNode:
        self._hit("create_product")
        if any(p["handle"] == product.handle for p in self.products.values()):
            raise ShopifyUserError("productCreate", [{"field": ["handle"], "message": "Handle has already been taken"}])
        pid = self._next()
        gid = f"gid://shopify/Product/{pid}"
        self.products[gid] = {
            "id": gid,
            "legacy_id": pid,
            "handle": product.handle,
            "title": product.title,
            "options": [{
                "id": f"gid://shopify/ProductOption/{self._next()}", "name": "Title", "position": 1,
                "values": [{"id": f"gid://shopify/ProductOptionValue/{self._next()}", "name": "Default Title", "linked": None}],
            }],
            "variants": [],
            "images": [],
            "default": True,
        }
        self.products[gid]["variants"].append(self._new_variant({"Title": "Default Title"}))
        return self._node(self.products[gid])

    def update_product(self, product: ProductUpdate) -> ProductNode:
        self._hit("update_product")
        stored = self.products[product.id]
        stored["title"] = product.title
        return self._node(stored)

    def publish_product(self, product_id: str, publication_id: str):
        self._hit("publish_product")
        self.published.append((product_id, publication_id))

    # ------------------------------------------------------------------
    # Options & variants
    # ------------------------------------------------------------------
    def create_options(self, product_id: str, options: List[OptionCreateInput]) -> List[ProductOptionNode]:
        self._hit("create_options")
        product = self.products[product_id]
        if product.get("default"):
            product["options"] = []
            product["default"] = False
            for variant in product["variants"]:
                variant["selected"] = {}
        for opt in options:
            if opt.linked_namespace:
                values = [self._value(OptionValueInput(linked_metafield_value=g)) for g in opt.linked_values]
            else:
                values = [self._value(OptionValueInput(name=v)) for v in opt.values]
            product["options"].append({
                "id": f"gid://shopify/ProductOption/{self._next()}",
                "name": opt.name,
                "position": len(product["options"]) + 1,
                "values": values,
                "namespace": opt.linked_namespace,
                "key": opt.linked_key,
            })
            for variant in product["variants"]:
                variant["selected"][opt.name] = values[0]["name"]
        return self._node(product).options

    def add_option_values(self, product_id: str, option_id: str, values: List[OptionValueInput]) -> List[ProductOptionNode]:
        self._hit("add_option_values")
        product = self.products[product_id]
        option = next(o for o in product["options"] if o["id"] == option_id)
        for value in values:
            option["values"].append(self._value(value))
        return self._node(product).options

    def update_variant(self, variant_legacy_id: int, patch: VariantPatch) -> dict:
        self._hit("update_variant")
        product, variant = self._variant(variant_legacy_id)
        data = patch.model_dump(exclude_none=True)
        for field in ("sku", "price", "barcode"):
            if field in data:
                variant[field] = data[field]
        ordered = sorted(product["options"], key=lambda o: o["position"])
        for idx, option in enumerate(ordered, start=1):
            new_value = data.get(f"option{idx}")
            if new_value is not None:
                variant["selected"][option["name"]] = new_value
        return dict(variant)

    def bulk_create_variants(self, product_id: str, variants: List[VariantInput]) -> Tuple[List[VariantNode], List[dict]]:
        self._hit("bulk_create_variants")
        product = self.products[product_id]
        created, errors = [], []
        for idx, item in enumerate(variants):
            selected = {v.option_name: v.name for v in item.option_values}
            if any(v["selected"] == selected for v in product["variants"]):
                errors.append({"field": ["variants", str(idx)], "message": f"The variant '{' / '.join(selected.values())}' already exists."})
                continue
            variant = self._new_variant(selected, item.sku, item.price or "0.00")
            product["variants"].append(variant)
            created.append(variant)
        node = self._node(product)
        ids = {v["id"] for v in created}
        return [v for v in node.variants if v.id in ids], errors

    # ------------------------------------------------------------------
    # Images & redirects
    # ------------------------------------------------------------------
    def add_image(self, product_legacy_id: int, src: str, position: Optional[int] = None) -> dict:
        self._hit("add_image")
        product = self._by_legacy(product_legacy_id)
        product["images"].append(src)
        return {"src": src, "position": position}

    def create_redirect(self, path: str, target: str) -> dict:
        self._hit("create_redirect")
        if path in self.redirects:
            raise TransportError(422, "redirects.json", '{"errors":{"path":["has already been taken"]}}')
        self.redirects[path] = target
        return {"path": path, "target": target}

    # ------------------------------------------------------------------
    # Metaobjects & metafields
    # ------------------------------------------------------------------
    def metaobject_definition_by_type(self, type_: str) -> Optional[dict]:
        self._hit("metaobject_definition_by_type")
        return self.metaobject_defs.get(type_)

    def create_metaobject_definition(self, type_: str, name: str, fields: List[dict]) -> str:
        self._hit("create_metaobject_definition")
        def_id = f"gid://shopify/MetaobjectDefinition/{self._next()}"
        self.metaobject_defs[type_] = {"id": def_id, "type": type_, "fields": [f["key"] for f in fields]}
        return def_id

    def add_metaobject_fields(self, definition_id: str, fields: List[dict]):
        self._hit("add_metaobject_fields")
        for definition in self.metaobject_defs.values():
            if definition["id"] == definition_id:
                definition["fields"] += [f["key"] for f in fields]

    def metafield_definitions(self, owner_type: str, namespace: str) -> List[dict]:
        self._hit("metafield_definitions")
        return [d for d in self.metafield_defs if d["namespace"] == namespace and d["ownerType"] == owner_type]

    def create_metafield_definition(self, definition: dict) -> Optional[str]:
        self._hit("create_metafield_definition")
        stored = dict(definition, id=f"gid://shopify/MetafieldDefinition/{self._next()}")
        self.metafield_defs.append(stored)
        return stored["id"]

    def metaobject_by_handle(self, type_: str, handle: str) -> Optional[str]:
        self._hit("metaobject_by_handle")
        for gid, mo in self.metaobjects.items():
            if mo["type"] == type_ and mo["handle"] == handle:
                return gid
        return None

    def create_metaobject(self, type_: str, handle: str, fields: Dict[str, str]) -> str:
        self._hit("create_metaobject")
        gid = f"gid://shopify/Metaobject/{self._next()}"
        self.metaobjects[gid] = {"type": type_, "handle": handle, "fields": dict(fields)}
        return gid

    def metafields_set(self, metafields: List[MetafieldInput]) -> List[dict]:
        self._hit("metafields_set")
        out = []
        for mf in metafields:
            key = (mf.owner_id, mf.namespace, mf.key)
            stored = self.metafields.get(key) or {"id": f"gid://shopify/Metafield/{self._next()}"}
            stored.update({"namespace": mf.namespace, "key": mf.key, "type": mf.type, "value": mf.value})
            self.metafields[key] = stored
            out.append({"id": stored["id"], "namespace": mf.namespace, "key": mf.key})
        return out

    def read_metafields(self, owner_id: str, namespace: str) -> List[dict]:
        self._hit("read_metafields")
        return [
            {"id": mf["id"], "namespace": ns, "key": key, "value": mf["value"]}
            for (owner, ns, key), mf in self.metafields.items()
            if owner == owner_id and ns == namespace
        ]

    # ------------------------------------------------------------------
    # Translations
    # ------------------------------------------------------------------
    def translatable_digests(self, resource_id: str) -> Dict[str, str]:
        self._hit("translatable_digests")
        return {key: f"digest-{key}" for key in DIGEST_KEYS}

    def register_translations(self, resource_id: str, translations: List[TranslationInput]):
        self._hit("register_translations")
        self.translations.extend((resource_id, t) for t in translations)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    def list_collections(self) -> List[CollectionEntry]:
        self._hit("list_collections")
        return [c.model_copy() for c in self.collections.values()]

    def create_collection(self, title: str, handle: str) -> CollectionEntry:
        self._hit("create_collection")
        if handle in self.collections:
            raise TransportError(422, "custom_collections.json", "handle taken")
        entry = CollectionEntry(id=f"gid://shopify/Collection/{self._next()}", handle=handle, title=title)
        self.collections[handle] = entry
        return entry.model_copy()

    def update_collection(self, collection_id: str, title: str) -> dict:
        self._hit("update_collection")
        for entry in self.collections.values():
            if entry.id == collection_id:
                entry.title = title
        return {"id": legacy_id(collection_id), "title": title}

    def find_collect(self, product_legacy_id: int, collection_id: str) -> bool:
        self._hit("find_collect")
        return (product_legacy_id, collection_id) in self.collects

    def create_collect(self, product_legacy_id: int, collection_id: str) -> dict:
        self._hit("create_collect")
        if (product_legacy_id, collection_id) in self.collects:
            raise TransportError(422, "collects.json", "already exists")
        self.collects.add((product_legacy_id, collection_id))
        return {"product_id": product_legacy_id, "collection_id": legacy_id(collection_id)}

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def file_create(self, original_source: str, content_type: str = "IMAGE", alt: Optional[str] = None) -> str:
        self._hit("file_create")
        gid = f"gid://shopify/MediaImage/{self._next()}" if content_type == "IMAGE" else f"gid://shopify/GenericFile/{self._next()}"
        status = "FAILED" if original_source in self.failing_sources else "READY"
        self.files[gid] = {"source": original_source, "status": status, "content_type": content_type}
        return gid

    def file_status(self, file_id: str) -> str:
        self._hit("file_status")
        return self.files[file_id]["status"]

    def staged_uploads_create(self, uploads: List[StagedUploadInput]) -> List[StagedTarget]:
        self._hit("staged_uploads_create")
        return [
            StagedTarget(url="https://uploads.example.com/bucket",
                         resource_url=f"https://uploads.example.com/tmp/{self._next()}/{u.filename}",
                         parameters={"key": u.filename})
            for u in uploads
        ]

    def upload_staged(self, target: StagedTarget, filename: str, content: bytes, mime: str):
        self._hit("upload_staged")
        self.staged_uploads.append(filename)

    def download(self, url: str) -> bytes:
        self._hit("download")
        return b"binary:" + url.encode()

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def inventory_set_quantities(self, quantities: List[InventoryQuantityInput]) -> List[dict]:
        self._hit("inventory_set_quantities")
        errors = []
        for idx, q in enumerate(quantities):
            if (q.inventory_item_id, q.location_id) not in self.stocked:
                errors.append({"code": NOT_STOCKED, "field": ["input", "quantities", str(idx), "locationId"],
                               "message": "The specified inventory item is not stocked at the location."})
                continue
            self.levels[(q.inventory_item_id, q.location_id)] = q.quantity
        return errors

    def inventory_activate(self, inventory_item_id: str, location_id: str, available: Optional[int] = None) -> List[dict]:
        self._hit("inventory_activate")
        self.stocked.add((inventory_item_id, location_id))
        if available is not None:
            self.levels[(inventory_item_id, location_id)] = available
        return []
