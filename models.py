# ============================================================================
#  models.py — Pydantic Data Models
#  Version: 2.0.0
#  CHANGES: Catalog source records, Shopify nodes, typed mutation inputs,
#           upsert and batch reports
# ============================================================================
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from text_utils import format_money, product_handle, strip_html

MAX_OPTIONS = 3


# ----------------------------------------------------------------------------
# Source side (catalog export)
# ----------------------------------------------------------------------------
class LocaleTexts(BaseModel):
    name: str = ""
    description: str = ""
    description_short: str = ""
    meta_title: str = ""
    meta_description: str = ""
    slug: str = Field("", alias="link_rewrite")

    model_config = ConfigDict(populate_by_name=True)


class OptionValueMeta(BaseModel):
    value_id: Optional[int] = Field(None, alias="id_attribute")
    group_id: Optional[int] = Field(None, alias="id_attribute_group")
    is_color: bool = Field(False, alias="is_color_group")
    color: Optional[str] = None
    texture_url: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class OptionPair(BaseModel):
    """One option-name → option-value pair of a variant (primary locale labels)."""
    name: str
    value: str
    meta: OptionValueMeta = Field(default_factory=OptionValueMeta)
    names_by_locale: Dict[str, str] = Field(default_factory=dict)
    values_by_locale: Dict[str, str] = Field(default_factory=dict)


class VariantDescriptor(BaseModel):
    source_id: Optional[int] = Field(None, alias="id_product_attribute")
    sku: str = ""
    price_delta: float = 0.0
    weight_delta: float = 0.0
    quantity: int = 0
    barcode: Optional[str] = None
    options: List[OptionPair] = Field(default_factory=list)
    titles_by_locale: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    def value_for(self, option_name: str) -> Optional[OptionPair]:
        for pair in self.options:
            if pair.name.strip().lower() == option_name.strip().lower():
                return pair
        return None


class CategoryText(BaseModel):
    title: str
    slug: str = ""


class CategoryDescriptor(BaseModel):
    category_id: int
    by_locale: Dict[str, CategoryText] = Field(default_factory=dict)


class Feature(BaseModel):
    feature_id: int
    names: Dict[str, str] = Field(default_factory=dict)
    values: Dict[str, List[str]] = Field(default_factory=dict)


class Attachment(BaseModel):
    attachment_id: int
    hash: str
    filename: str
    mime: str = "application/octet-stream"
    local_path: Optional[str] = None
    url: Optional[str] = None
    names: Dict[str, str] = Field(default_factory=dict)


class SourceRecord(BaseModel):
    """A catalog product as exported by the source of record."""
    id: int
    reference: str = ""
    brand: str = ""
    brand_id: Optional[int] = None
    product_type: str = ""
    base_price: float = 0.0
    weight: float = 0.0
    quantity: int = 0
    barcode: Optional[str] = None
    taxable: bool = True
    tags: List[str] = Field(default_factory=list)
    texts: Dict[str, LocaleTexts] = Field(default_factory=dict)
    image_urls: List[str] = Field(default_factory=list)
    variants: List[VariantDescriptor] = Field(default_factory=list)
    categories: List[CategoryDescriptor] = Field(default_factory=list)
    features: List[Feature] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)

    def texts_for(self, locale: str) -> LocaleTexts:
        if locale in self.texts:
            return self.texts[locale]
        if self.texts:
            return next(iter(self.texts.values()))
        return LocaleTexts()

    def handle(self, primary_locale: str) -> str:
        """Stable across title edits: the slug wins over the name."""
        texts = self.texts_for(primary_locale)
        return product_handle(texts.slug or texts.name, self.id)

    def option_order(self) -> List[str]:
        """Option group names in first-appearance order, capped at the platform limit."""
        order: List[str] = []
        seen = set()
        for variant in self.variants:
            for pair in variant.options:
                norm = pair.name.strip().lower()
                if norm and norm not in seen:
                    seen.add(norm)
                    order.append(pair.name.strip())
        return order[:MAX_OPTIONS]

    def option_values(self, option_name: str) -> List[OptionPair]:
        """Distinct values of one option group, in first-appearance order."""
        values: List[OptionPair] = []
        seen = set()
        for variant in self.variants:
            pair = variant.value_for(option_name)
            if pair is None:
                continue
            norm = pair.value.strip().lower()
            if norm not in seen:
                seen.add(norm)
                values.append(pair)
        return values

    def short_description_plain(self, locale: str) -> str:
        return strip_html(self.texts_for(locale).description_short)


# ----------------------------------------------------------------------------
# Target side (Shopify nodes as read back)
# ----------------------------------------------------------------------------
class OptionValueNode(BaseModel):
    id: str
    name: str
    linked_metafield_value: Optional[str] = None


class ProductOptionNode(BaseModel):
    id: str
    name: str
    position: int = 0
    values: List[OptionValueNode] = Field(default_factory=list)
    linked_namespace: Optional[str] = None
    linked_key: Optional[str] = None


class SelectedOption(BaseModel):
    name: str
    value: str


class VariantNode(BaseModel):
    id: str
    legacy_id: Optional[int] = None
    sku: Optional[str] = None
    title: str = ""
    selected_options: List[SelectedOption] = Field(default_factory=list)
    inventory_item_id: Optional[str] = None


class ProductNode(BaseModel):
    id: str
    legacy_id: Optional[int] = None
    handle: str = ""
    title: str = ""
    options: List[ProductOptionNode] = Field(default_factory=list)
    variants: List[VariantNode] = Field(default_factory=list)
    image_count: int = 0

    def option_named(self, name: str) -> Optional[ProductOptionNode]:
        wanted = name.strip().lower()
        for option in self.options:
            if option.name.strip().lower() == wanted:
                return option
        return None


class CollectionEntry(BaseModel):
    id: str
    handle: str
    title: str = ""


# ----------------------------------------------------------------------------
# Typed mutation / REST inputs
# ----------------------------------------------------------------------------
class ProductInput(BaseModel):
    title: str
    handle: str
    description_html: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: str = "ACTIVE"
    category: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None

    def to_graphql(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "handle": self.handle,
            "descriptionHtml": self.description_html,
            "vendor": self.vendor,
            "productType": self.product_type,
            "tags": self.tags or None,
            "status": self.status,
            "category": self.category,
        }
        if self.seo_title or self.seo_description:
            data["seo"] = {k: v for k, v in {"title": self.seo_title, "description": self.seo_description}.items() if v}
        return {k: v for k, v in data.items() if v is not None and v != ""}


class ProductUpdate(ProductInput):
    id: str
    status: Optional[str] = None

    def to_graphql(self) -> Dict[str, Any]:
        data = super().to_graphql()
        data["id"] = self.id
        # the handle is the lookup key; never rewrite it on update
        data.pop("handle", None)
        return data


class VariantPatch(BaseModel):
    """Field patch for an existing variant (REST PUT variants/{id}.json)."""
    sku: Optional[str] = None
    price: Optional[str] = None
    barcode: Optional[str] = None
    taxable: Optional[bool] = None
    grams: Optional[int] = None
    option1: Optional[str] = None
    option2: Optional[str] = None
    option3: Optional[str] = None
    inventory_management: Optional[str] = "shopify"
    inventory_policy: Optional[str] = None

    def to_rest(self) -> Dict[str, Any]:
        return {"variant": self.model_dump(exclude_none=True)}


class VariantOptionValue(BaseModel):
    option_name: str
    name: str


class VariantInput(BaseModel):
    """ProductVariantsBulkInput for productVariantsBulkCreate."""
    sku: Optional[str] = None
    price: Optional[str] = None
    barcode: Optional[str] = None
    taxable: Optional[bool] = None
    weight_grams: Optional[int] = None
    tracked: bool = True
    inventory_policy: Optional[str] = None
    option_values: List[VariantOptionValue] = Field(default_factory=list)

    def to_graphql(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {"tracked": self.tracked}
        if self.sku:
            item["sku"] = self.sku
        if self.weight_grams is not None:
            item["measurement"] = {"weight": {"value": float(self.weight_grams), "unit": "GRAMS"}}
        data: Dict[str, Any] = {
            "price": self.price,
            "barcode": self.barcode,
            "taxable": self.taxable,
            "inventoryPolicy": self.inventory_policy.upper() if self.inventory_policy else None,
            "inventoryItem": item,
            "optionValues": [{"optionName": v.option_name, "name": v.name} for v in self.option_values],
        }
        return {k: v for k, v in data.items() if v is not None}


class OptionValueInput(BaseModel):
    name: Optional[str] = None
    linked_metafield_value: Optional[str] = None

    def to_graphql(self) -> Dict[str, Any]:
        if self.linked_metafield_value:
            return {"linkedMetafieldValue": self.linked_metafield_value}
        return {"name": self.name}


class OptionCreateInput(BaseModel):
    name: str
    position: Optional[int] = None
    values: List[str] = Field(default_factory=list)
    linked_namespace: Optional[str] = None
    linked_key: Optional[str] = None
    linked_values: List[str] = Field(default_factory=list)

    def to_graphql(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.position is not None:
            data["position"] = self.position
        if self.linked_namespace and self.linked_key:
            data["linkedMetafield"] = {
                "namespace": self.linked_namespace,
                "key": self.linked_key,
                "values": self.linked_values,
            }
        else:
            data["values"] = [{"name": v} for v in self.values]
        return data


class InventoryQuantityInput(BaseModel):
    inventory_item_id: str
    location_id: str
    quantity: int

    def to_graphql(self) -> Dict[str, Any]:
        return {
            "inventoryItemId": self.inventory_item_id,
            "locationId": self.location_id,
            "quantity": int(self.quantity),
        }


class MetafieldInput(BaseModel):
    owner_id: str
    namespace: str
    key: str
    type: str
    value: str

    def to_graphql(self) -> Dict[str, Any]:
        return {
            "ownerId": self.owner_id,
            "namespace": self.namespace,
            "key": self.key,
            "type": self.type,
            "value": self.value,
        }


class TranslationInput(BaseModel):
    key: str
    value: str
    locale: str
    translatable_content_digest: str

    def to_graphql(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "locale": self.locale,
            "translatableContentDigest": self.translatable_content_digest,
        }


class StagedUploadInput(BaseModel):
    filename: str
    mime_type: str
    resource: str = "FILE"
    file_size: Optional[int] = None
    http_method: str = "POST"

    def to_graphql(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "filename": self.filename,
            "mimeType": self.mime_type,
            "resource": self.resource,
            "httpMethod": self.http_method,
        }
        if self.file_size is not None:
            data["fileSize"] = str(self.file_size)
        return data


class StagedTarget(BaseModel):
    url: str
    resource_url: str
    parameters: Dict[str, str] = Field(default_factory=dict)


# ----------------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------------
class StepResult(BaseModel):
    step: str
    ok: bool
    duration_ms: int = 0
    t_from_start_ms: int = 0
    error: Optional[str] = None


class UpsertResult(BaseModel):
    action: Literal["created", "updated", "dry-run"]
    product_id: Optional[str] = None


class UpsertReport(BaseModel):
    source_id: int
    handle: str = ""
    ok: bool = False
    elapsed_ms: int = 0
    steps: List[StepResult] = Field(default_factory=list)
    result: Optional[UpsertResult] = None
    error: Optional[str] = None

    def step(self, name: str) -> Optional[StepResult]:
        for entry in self.steps:
            if entry.step == name:
                return entry
        return None


class InventoryOutcome(BaseModel):
    inventory_item_id: str
    quantity: int
    ok: bool
    activated: bool = False
    error: Optional[str] = None


class BatchFilter(BaseModel):
    brand_id: Optional[int] = None
    product_ids: List[int] = Field(default_factory=list)
    offset: int = 0
    limit: Optional[int] = None


class BatchItem(BaseModel):
    source_id: int
    ok: bool
    report: Optional[UpsertReport] = None
    error: Optional[str] = None


class BatchResult(BaseModel):
    ok: bool = True
    had_errors: bool = False
    items: List[BatchItem] = Field(default_factory=list)
    processed: int = 0
    failed: int = 0
    cursor_next: int = 0
    finished: bool = False
    error: Optional[str] = None


def variant_price(record: SourceRecord, variant: Optional[VariantDescriptor], multiplier: float) -> str:
    delta = variant.price_delta if variant else 0.0
    return format_money((record.base_price + delta) * multiplier)


def variant_grams(record: SourceRecord, variant: Optional[VariantDescriptor]) -> int:
    delta = variant.weight_delta if variant else 0.0
    return int(round((record.weight + delta) * 1000))
# ============================================================================
# End of models.py — Version: 2.0.0
# ============================================================================
