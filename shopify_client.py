# ============================================================================
#  shopify_client.py — Shopify API Handler
#  Version: 2.0.0
#  CHANGES: Rate-limited retry transport shared by REST and GraphQL, typed
#           operations for products, options, variants, metaobjects,
#           metafields, translations, collections, files and inventory
# ============================================================================
import json
import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

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
from rate_limiter import EndpointClass, RateLimiter, RetryPolicy
from text_utils import legacy_id

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = """
  id
  legacyResourceId
  handle
  title
  options {
    id
    name
    position
    linkedMetafield { namespace key }
    optionValues { id name linkedMetafieldValue }
  }
  variants(first: 250) {
    edges {
      node {
        id
        legacyResourceId
        sku
        title
        selectedOptions { name value }
        inventoryItem { id }
      }
    }
  }
  media(first: 250) { edges { node { id } } }
"""

OPTION_FIELDS = """
  id
  name
  position
  linkedMetafield { namespace key }
  optionValues { id name linkedMetafieldValue }
"""

_OPERATION_RE = re.compile(r"\b(query|mutation)\s+(\w+)")


def _operation_name(query: str) -> str:
    match = _OPERATION_RE.search(query)
    return match.group(2) if match else "anonymous"


def _parse_option(node: Dict[str, Any]) -> ProductOptionNode:
    linked = node.get("linkedMetafield") or {}
    return ProductOptionNode(
        id=node["id"],
        name=node.get("name") or "",
        position=node.get("position") or 0,
        values=[
            OptionValueNode(
                id=v["id"],
                name=v.get("name") or "",
                linked_metafield_value=v.get("linkedMetafieldValue"),
            )
            for v in node.get("optionValues") or []
        ],
        linked_namespace=linked.get("namespace"),
        linked_key=linked.get("key"),
    )


def _parse_variant(node: Dict[str, Any]) -> VariantNode:
    item = node.get("inventoryItem") or {}
    legacy = node.get("legacyResourceId")
    return VariantNode(
        id=node["id"],
        legacy_id=int(legacy) if legacy else legacy_id(node["id"]),
        sku=node.get("sku"),
        title=node.get("title") or "",
        selected_options=[SelectedOption(**o) for o in node.get("selectedOptions") or []],
        inventory_item_id=item.get("id"),
    )


def _parse_product(node: Dict[str, Any]) -> ProductNode:
    legacy = node.get("legacyResourceId")
    variants = [_parse_variant(e["node"]) for e in (node.get("variants") or {}).get("edges", [])]
    media = (node.get("media") or {}).get("edges", [])
    return ProductNode(
        id=node["id"],
        legacy_id=int(legacy) if legacy else legacy_id(node["id"]),
        handle=node.get("handle") or "",
        title=node.get("title") or "",
        options=[_parse_option(o) for o in node.get("options") or []],
        variants=variants,
        image_count=len(media),
    )


def _json(response: requests.Response, label: str) -> Dict[str, Any]:
    try:
        return response.json()
    except ValueError as e:
        logger.error(f"{label} returned invalid JSON: {e}")
        raise TransportError(response.status_code, label, response.text or "", message=f"Invalid JSON from {label}: {e}")


def _check_user_errors(operation: str, payload: Optional[Dict[str, Any]], ignore: Optional[Callable[[Dict], bool]] = None):
    errors = (payload or {}).get("userErrors") or []
    if ignore:
        errors = [e for e in errors if not ignore(e)]
    if errors:
        logger.error(f"{operation} userErrors: {errors}")
        raise ShopifyUserError(operation, errors)


class ShopifyClient:
    def __init__(
        self,
        domain: str,
        token: str,
        version: str,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initializes the Shopify Client with dual API support."""
        # Trim whitespace from token (common issue with env vars)
        token = token.strip() if token else ""

        self.admin_url = f"https://{domain}/admin/api/{version}/graphql.json"
        self.rest_url = f"https://{domain}/admin/api/{version}"
        self.headers = {
            "X-Shopify-Access-Token": token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        # Use session for connection pooling and reuse
        self.session = session or requests.Session()
        self.session.headers.update(self.headers)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.sleep = sleep

        # Log configuration (without exposing token)
        logger.info("=" * 80)
        logger.info("Shopify API Configuration:")
        logger.info(f"  Domain: {domain}")
        logger.info(f"  API Version: {version}")
        logger.info(f"  GraphQL URL: {self.admin_url}")
        logger.info(f"  REST URL: {self.rest_url}")
        logger.info(f"  Access Token: {'*' * min(len(token), 20)}... (hidden)")
        logger.info("=" * 80)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _dispatch(self, endpoint_class: EndpointClass, method: str, url: str, label: str, **kwargs) -> requests.Response:
        """Sends one logical call, retrying 429/5xx and connection failures."""
        policy = self.retry_policy
        backoff = policy.initial_delay
        attempt = 0
        while True:
            attempt += 1
            self.rate_limiter.wait(endpoint_class)
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as e:
                self.rate_limiter.mark(endpoint_class)
                if attempt > policy.max_retries:
                    logger.error(f"{method} {label} failed after {attempt} attempts: {e}")
                    raise TransportError(0, label, str(e))
                logger.warning(f"{method} {label} connection error (attempt {attempt}): {e}. Retrying in {backoff:.2f}s")
                self.sleep(backoff)
                backoff = policy.next_backoff(backoff)
                continue
            self.rate_limiter.mark(endpoint_class)

            status = response.status_code
            if policy.is_retryable(status):
                if attempt > policy.max_retries:
                    logger.error(f"{method} {label} HTTP {status}: retries exhausted after {attempt} attempts")
                    raise TransportError(status, label, response.text or "")
                delay = policy.retry_after(response.headers.get("Retry-After"))
                if delay is None:
                    delay = backoff
                    backoff = policy.next_backoff(backoff)
                logger.warning(f"{method} {label} HTTP {status} (attempt {attempt}). Waiting {delay:.2f}s...")
                self.sleep(delay)
                continue

            if status < 200 or status >= 300:
                if status == 401:
                    logger.error(f"Shopify authentication failed (401 Unauthorized) on {label}")
                    logger.error("  Please verify the access token, its scopes and SHOPIFY_DOMAIN")
                raise TransportError(status, label, response.text or "")
            return response

    def rest(self, method: str, path: str, body: Optional[Dict] = None, params: Optional[Dict] = None) -> Dict:
        """REST call. inventory_levels/* paths use the inventory endpoint class."""
        path = path.lstrip("/")
        endpoint_class = EndpointClass.INVENTORY if path.startswith("inventory_levels/") else EndpointClass.BULK
        kwargs: Dict[str, Any] = {}
        if body is not None:
            kwargs["json"] = body
        if params:
            kwargs["params"] = params
        logger.debug(f"REST {method} {path} {json.dumps(body)[:4096] if body else ''}")
        response = self._dispatch(endpoint_class, method, f"{self.rest_url}/{path}", path, **kwargs)
        if not response.content:
            return {}
        return _json(response, path)

    def graphql(self, query: str, variables: Optional[Dict] = None, endpoint_class: EndpointClass = EndpointClass.BULK) -> Dict:
        """GraphQL call returning `data`. Top-level errors fail; THROTTLED is retried."""
        operation = _operation_name(query)
        label = f"graphql:{operation}"
        payload = {"query": query, "variables": variables or {}}
        backoff = self.retry_policy.initial_delay
        for attempt in range(self.retry_policy.max_retries + 1):
            response = self._dispatch(endpoint_class, "POST", self.admin_url, label, json=payload)
            data = _json(response, label)
            errors = data.get("errors") or []
            if not errors:
                return data.get("data") or {}
            throttled = any((err.get("extensions") or {}).get("code") == "THROTTLED" for err in errors)
            if throttled and attempt < self.retry_policy.max_retries:
                logger.warning(f"Throttled on {operation}. Waiting {backoff:.2f}s...")
                self.sleep(backoff)
                backoff = self.retry_policy.next_backoff(backoff)
                continue
            logger.error(f"GraphQL errors in {operation}: {errors}")
            raise TransportError(200, label, json.dumps(errors), message=f"GraphQL errors in {operation}: {errors}")
        raise TransportError(429, label, "throttled")

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    def find_product_by_handle(self, handle: str) -> Optional[ProductNode]:
        query = f"query productByHandle($handle: String!) {{ productByHandle(handle: $handle) {{ {PRODUCT_FIELDS} }} }}"
        data = self.graphql(query, {"handle": handle})
        node = data.get("productByHandle")
        return _parse_product(node) if node else None

    def get_product(self, product_id: str) -> Optional[ProductNode]:
        query = f"query product($id: ID!) {{ product(id: $id) {{ {PRODUCT_FIELDS} }} }}"
        node = self.graphql(query, {"id": product_id}).get("product")
        return _parse_product(node) if node else None

    def create_product(self, product: ProductInput) -> ProductNode:
        mutation = f"""mutation productCreate($input: ProductInput!) {{
            productCreate(input: $input) {{ product {{ {PRODUCT_FIELDS} }} userErrors {{ field message }} }}
        }}"""
        payload = self.graphql(mutation, {"input": product.to_graphql()}).get("productCreate")
        _check_user_errors("productCreate", payload)
        node = (payload or {}).get("product")
        if not node:
            raise TransportError(200, "graphql:productCreate", json.dumps(payload), message="productCreate returned no product")
        logger.info(f"Product created successfully: {node['id']}")
        return _parse_product(node)

    def update_product(self, product: ProductUpdate) -> ProductNode:
        mutation = f"""mutation productUpdate($input: ProductInput!) {{
            productUpdate(input: $input) {{ product {{ {PRODUCT_FIELDS} }} userErrors {{ field message }} }}
        }}"""
        payload = self.graphql(mutation, {"input": product.to_graphql()}).get("productUpdate")
        _check_user_errors("productUpdate", payload)
        node = (payload or {}).get("product")
        if not node:
            raise TransportError(200, "graphql:productUpdate", json.dumps(payload), message="productUpdate returned no product")
        logger.info(f"Product updated successfully: {node['id']}")
        return _parse_product(node)

    def publish_product(self, product_id: str, publication_id: str):
        mutation = """mutation publish($id: ID!, $publicationId: ID!) {
          publishablePublish(id: $id, input: { publicationId: $publicationId }) { userErrors { field message } }
        }"""
        payload = self.graphql(mutation, {"id": product_id, "publicationId": publication_id}).get("publishablePublish")
        _check_user_errors("publishablePublish", payload)

    # ------------------------------------------------------------------
    # Options & variants
    # ------------------------------------------------------------------
    def create_options(self, product_id: str, options: List[OptionCreateInput]) -> List[ProductOptionNode]:
        mutation = f"""mutation productOptionsCreate($productId: ID!, $options: [OptionCreateInput!]!) {{
          productOptionsCreate(productId: $productId, options: $options) {{
            product {{ options {{ {OPTION_FIELDS} }} }}
            userErrors {{ field message code }}
          }}
        }}"""
        variables = {"productId": product_id, "options": [o.to_graphql() for o in options]}
        payload = self.graphql(mutation, variables).get("productOptionsCreate")
        _check_user_errors("productOptionsCreate", payload)
        product = (payload or {}).get("product") or {}
        return [_parse_option(o) for o in product.get("options") or []]

    def add_option_values(self, product_id: str, option_id: str, values: List[OptionValueInput]) -> List[ProductOptionNode]:
        mutation = f"""mutation productOptionUpdate($productId: ID!, $optionId: ID!, $optionValuesToAdd: [OptionValueCreateInput!]!) {{
          productOptionUpdate(productId: $productId, option: {{ id: $optionId }}, optionValuesToAdd: $optionValuesToAdd) {{
            product {{ options {{ {OPTION_FIELDS} }} }}
            userErrors {{ field message code }}
          }}
        }}"""
        variables = {
            "productId": product_id,
            "optionId": option_id,
            "optionValuesToAdd": [v.to_graphql() for v in values],
        }
        payload = self.graphql(mutation, variables).get("productOptionUpdate")
        _check_user_errors("productOptionUpdate", payload)
        product = (payload or {}).get("product") or {}
        return [_parse_option(o) for o in product.get("options") or []]

    def update_variant(self, variant_legacy_id: int, patch: VariantPatch) -> Dict:
        return self.rest("PUT", f"variants/{variant_legacy_id}.json", patch.to_rest()).get("variant", {})

    def bulk_create_variants(self, product_id: str, variants: List[VariantInput]) -> Tuple[List[VariantNode], List[Dict]]:
        """Returns (created variants, userErrors). The caller decides which user errors are benign."""
        mutation = """mutation productVariantsBulkCreate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
          productVariantsBulkCreate(productId: $productId, variants: $variants) {
            productVariants { id legacyResourceId sku title selectedOptions { name value } inventoryItem { id } }
            userErrors { field message code }
          }
        }"""
        variables = {"productId": product_id, "variants": [v.to_graphql() for v in variants]}
        payload = self.graphql(mutation, variables).get("productVariantsBulkCreate") or {}
        created = [_parse_variant(v) for v in payload.get("productVariants") or []]
        return created, payload.get("userErrors") or []

    # ------------------------------------------------------------------
    # Images & redirects
    # ------------------------------------------------------------------
    def add_image(self, product_legacy_id: int, src: str, position: Optional[int] = None) -> Dict:
        image: Dict[str, Any] = {"src": src}
        if position is not None:
            image["position"] = position
        result = self.rest("POST", f"products/{product_legacy_id}/images.json", {"image": image})
        logger.info(f"Image uploaded successfully for product {product_legacy_id}")
        return result.get("image", {})

    def create_redirect(self, path: str, target: str) -> Dict:
        return self.rest("POST", "redirects.json", {"redirect": {"path": path, "target": target}}).get("redirect", {})

    # ------------------------------------------------------------------
    # Metaobjects & metafields
    # ------------------------------------------------------------------
    def metaobject_definition_by_type(self, type_: str) -> Optional[Dict]:
        query = """query defByType($type: String!) {
          metaobjectDefinitionByType(type: $type) { id type fieldDefinitions { key } }
        }"""
        node = self.graphql(query, {"type": type_}).get("metaobjectDefinitionByType")
        if not node:
            return None
        return {"id": node["id"], "type": node.get("type"), "fields": [f["key"] for f in node.get("fieldDefinitions") or []]}

    def create_metaobject_definition(self, type_: str, name: str, fields: List[Dict]) -> str:
        mutation = """mutation defCreate($definition: MetaobjectDefinitionCreateInput!) {
          metaobjectDefinitionCreate(definition: $definition) {
            metaobjectDefinition { id }
            userErrors { field message code }
          }
        }"""
        definition = {
            "type": type_,
            "name": name,
            "displayNameKey": fields[0]["key"] if fields else None,
            "fieldDefinitions": fields,
        }
        payload = self.graphql(mutation, {"definition": definition}).get("metaobjectDefinitionCreate")
        _check_user_errors("metaobjectDefinitionCreate", payload)
        return payload["metaobjectDefinition"]["id"]

    def add_metaobject_fields(self, definition_id: str, fields: List[Dict]):
        mutation = """mutation defUpdate($id: ID!, $definition: MetaobjectDefinitionUpdateInput!) {
          metaobjectDefinitionUpdate(id: $id, definition: $definition) { userErrors { field message code } }
        }"""
        definition = {"fieldDefinitions": [{"create": f} for f in fields]}
        payload = self.graphql(mutation, {"id": definition_id, "definition": definition}).get("metaobjectDefinitionUpdate")
        _check_user_errors("metaobjectDefinitionUpdate", payload)

    def metafield_definitions(self, owner_type: str, namespace: str) -> List[Dict]:
        query = """query MFDefs($ownerType: MetafieldOwnerType!, $namespace: String!) {
          metafieldDefinitions(first: 250, ownerType: $ownerType, namespace: $namespace) {
            edges { node { id namespace key type { name } } }
          }
        }"""
        data = self.graphql(query, {"ownerType": owner_type, "namespace": namespace})
        edges = (data.get("metafieldDefinitions") or {}).get("edges", [])
        return [
            {"id": e["node"]["id"], "namespace": e["node"]["namespace"], "key": e["node"]["key"],
             "type": (e["node"].get("type") or {}).get("name")}
            for e in edges
        ]

    def create_metafield_definition(self, definition: Dict) -> Optional[str]:
        mutation = """mutation MFDefCreate($definition: MetafieldDefinitionInput!) {
          metafieldDefinitionCreate(definition: $definition) {
            createdDefinition { id }
            userErrors { field message code }
          }
        }"""
        payload = self.graphql(mutation, {"definition": definition}).get("metafieldDefinitionCreate")
        # a concurrent run may have created it already
        _check_user_errors("metafieldDefinitionCreate", payload, ignore=lambda e: e.get("code") == "TAKEN")
        return ((payload or {}).get("createdDefinition") or {}).get("id")

    def metaobject_by_handle(self, type_: str, handle: str) -> Optional[str]:
        query = """query moByHandle($handle: MetaobjectHandleInput!) {
          metaobjectByHandle(handle: $handle) { id }
        }"""
        node = self.graphql(query, {"handle": {"type": type_, "handle": handle}}).get("metaobjectByHandle")
        return node["id"] if node else None

    def create_metaobject(self, type_: str, handle: str, fields: Dict[str, str]) -> str:
        mutation = """mutation moCreate($metaobject: MetaobjectCreateInput!) {
          metaobjectCreate(metaobject: $metaobject) { metaobject { id } userErrors { field message code } }
        }"""
        metaobject = {
            "type": type_,
            "handle": handle,
            "fields": [{"key": k, "value": v} for k, v in fields.items() if v not in (None, "")],
        }
        payload = self.graphql(mutation, {"metaobject": metaobject}).get("metaobjectCreate")
        _check_user_errors("metaobjectCreate", payload)
        return payload["metaobject"]["id"]

    def metafields_set(self, metafields: List[MetafieldInput]) -> List[Dict]:
        mutation = """mutation MFSet($metafields: [MetafieldsSetInput!]!) {
          metafieldsSet(metafields: $metafields) {
            metafields { id namespace key }
            userErrors { field message code }
          }
        }"""
        created: List[Dict] = []
        # metafieldsSet accepts at most 25 entries per call
        for start in range(0, len(metafields), 25):
            chunk = metafields[start:start + 25]
            payload = self.graphql(mutation, {"metafields": [m.to_graphql() for m in chunk]}).get("metafieldsSet")
            _check_user_errors("metafieldsSet", payload)
            created.extend((payload or {}).get("metafields") or [])
        return created

    def read_metafields(self, owner_id: str, namespace: str) -> List[Dict]:
        query = """query ReadMF($id: ID!, $ns: String!) {
          node(id: $id) {
            ... on HasMetafields {
              metafields(first: 250, namespace: $ns) { edges { node { id namespace key value } } }
            }
          }
        }"""
        node = self.graphql(query, {"id": owner_id, "ns": namespace}).get("node") or {}
        return [e["node"] for e in (node.get("metafields") or {}).get("edges", [])]

    # ------------------------------------------------------------------
    # Translations
    # ------------------------------------------------------------------
    def translatable_digests(self, resource_id: str) -> Dict[str, str]:
        query = """query GetDigests($id: ID!) {
          translatableResource(resourceId: $id) { translatableContent { key digest } }
        }"""
        resource = self.graphql(query, {"id": resource_id}).get("translatableResource") or {}
        return {c["key"]: c["digest"] for c in resource.get("translatableContent") or [] if c.get("digest")}

    def register_translations(self, resource_id: str, translations: List[TranslationInput]):
        if not translations:
            return
        mutation = """mutation TranslationsRegister($id: ID!, $translations: [TranslationInput!]!) {
          translationsRegister(resourceId: $id, translations: $translations) { userErrors { field message code } }
        }"""
        variables = {"id": resource_id, "translations": [t.to_graphql() for t in translations]}
        payload = self.graphql(mutation, variables).get("translationsRegister")
        _check_user_errors("translationsRegister", payload)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    def list_collections(self) -> List[CollectionEntry]:
        query = """query collections($after: String) {
          collections(first: 250, after: $after) {
            edges { node { id handle title } }
            pageInfo { hasNextPage endCursor }
          }
        }"""
        entries: List[CollectionEntry] = []
        after = None
        while True:
            conn = self.graphql(query, {"after": after}).get("collections") or {}
            for edge in conn.get("edges", []):
                entries.append(CollectionEntry(**edge["node"]))
            page = conn.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                break
            after = page.get("endCursor")
        logger.info(f"Loaded {len(entries)} collections")
        return entries

    def create_collection(self, title: str, handle: str) -> CollectionEntry:
        data = self.rest("POST", "custom_collections.json", {"custom_collection": {"title": title, "handle": handle}})
        coll = data.get("custom_collection") or {}
        gid = coll.get("admin_graphql_api_id") or f"gid://shopify/Collection/{coll.get('id')}"
        return CollectionEntry(id=gid, handle=coll.get("handle") or handle, title=coll.get("title") or title)

    def update_collection(self, collection_id: str, title: str) -> Dict:
        cid = legacy_id(collection_id)
        body = {"custom_collection": {"id": cid, "title": title}}
        return self.rest("PUT", f"custom_collections/{cid}.json", body).get("custom_collection", {})

    def find_collect(self, product_legacy_id: int, collection_id: str) -> bool:
        params = {"product_id": product_legacy_id, "collection_id": legacy_id(collection_id), "limit": 1}
        return bool(self.rest("GET", "collects.json", params=params).get("collects"))

    def create_collect(self, product_legacy_id: int, collection_id: str) -> Dict:
        body = {"collect": {"product_id": product_legacy_id, "collection_id": legacy_id(collection_id)}}
        return self.rest("POST", "collects.json", body).get("collect", {})

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------
    def file_create(self, original_source: str, content_type: str = "IMAGE", alt: Optional[str] = None) -> str:
        mutation = """mutation fileCreate($files: [FileCreateInput!]!) {
          fileCreate(files: $files) { files { id fileStatus } userErrors { field message code } }
        }"""
        file_input: Dict[str, Any] = {"originalSource": original_source, "contentType": content_type}
        if alt:
            file_input["alt"] = alt
        payload = self.graphql(mutation, {"files": [file_input]}).get("fileCreate")
        _check_user_errors("fileCreate", payload)
        files = (payload or {}).get("files") or []
        if not files or not files[0].get("id"):
            raise TransportError(200, "graphql:fileCreate", json.dumps(payload), message="fileCreate returned no file")
        return files[0]["id"]

    def file_status(self, file_id: str) -> str:
        query = """query nodeFile($id: ID!) { node(id: $id) { ... on File { fileStatus } } }"""
        node = self.graphql(query, {"id": file_id}).get("node") or {}
        return node.get("fileStatus") or "UNKNOWN"

    def staged_uploads_create(self, uploads: List[StagedUploadInput]) -> List[StagedTarget]:
        mutation = """mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
          stagedUploadsCreate(input: $input) {
            stagedTargets { url resourceUrl parameters { name value } }
            userErrors { field message }
          }
        }"""
        payload = self.graphql(mutation, {"input": [u.to_graphql() for u in uploads]}).get("stagedUploadsCreate")
        _check_user_errors("stagedUploadsCreate", payload)
        return [
            StagedTarget(
                url=t["url"],
                resource_url=t["resourceUrl"],
                parameters={p["name"]: p["value"] for p in t.get("parameters") or []},
            )
            for t in (payload or {}).get("stagedTargets") or []
        ]

    def upload_staged(self, target: StagedTarget, filename: str, content: bytes, mime: str):
        """Multipart POST to the staged target (a storage bucket, not the Admin API)."""
        try:
            response = requests.post(
                target.url,
                data=target.parameters,
                files={"file": (filename, content, mime)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(0, "staged-upload", str(e))
        if response.status_code >= 300:
            raise TransportError(response.status_code, "staged-upload", response.text or "")
        logger.info(f"Staged upload complete: {filename} ({len(content)} bytes)")

    def download(self, url: str) -> bytes:
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise TransportError(e.response.status_code, url, e.response.text or "")
        except requests.RequestException as e:
            raise TransportError(0, url, str(e))
        return response.content

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def inventory_set_quantities(self, quantities: List[InventoryQuantityInput]) -> List[Dict]:
        """Absolute `available` quantities; returns userErrors (with code and field path)."""
        mutation = """mutation invSet($input: InventorySetQuantitiesInput!) {
          inventorySetQuantities(input: $input) { userErrors { code field message } }
        }"""
        input_ = {
            "name": "available",
            "reason": "correction",
            "ignoreCompareQuantity": True,
            "quantities": [q.to_graphql() for q in quantities],
        }
        payload = self.graphql(mutation, {"input": input_}, EndpointClass.INVENTORY).get("inventorySetQuantities") or {}
        return payload.get("userErrors") or []

    def inventory_activate(self, inventory_item_id: str, location_id: str, available: Optional[int] = None) -> List[Dict]:
        mutation = """mutation invAct($inventoryItemId: ID!, $locationId: ID!, $available: Int) {
          inventoryActivate(inventoryItemId: $inventoryItemId, locationId: $locationId, available: $available) {
            userErrors { field message }
          }
        }"""
        variables = {"inventoryItemId": inventory_item_id, "locationId": location_id, "available": available}
        payload = self.graphql(mutation, variables, EndpointClass.INVENTORY).get("inventoryActivate") or {}
        return payload.get("userErrors") or []
# ============================================================================
# End of shopify_client.py — Version: 2.0.0
# ============================================================================
