# ============================================================================
#  sync_engine.py — Orchestration Engine
#  Version: 2.0.0
#  CHANGES: Per-record upsert state machine (lookup, create/update root,
#           best-effort child steps) with a structured step report
# ============================================================================
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from caches import CollectionCache, SeenSet
from collection_sync import CollectionSync
from config import SyncConfig
from errors import ChildSyncWarning, TransportError, ValidationError
from file_uploads import FileUploader
from inventory_sync import InventoryReconciler
from linked_options import LinkedOptionSync
from metafield_sync import MetafieldSync
from models import ProductInput, ProductNode, ProductUpdate, SourceRecord, StepResult, UpsertReport, UpsertResult
from resolver import NaturalKeyResolver, declared_option_order
from text_utils import slugify, to_gid
from translation_sync import TranslationSync
from variant_sync import VariantSync

logger = logging.getLogger(__name__)


class _StepRunner:
    """Times steps and appends a StepResult for each one."""

    def __init__(self, report: UpsertReport, clock: Callable[[], float]):
        self.report = report
        self.clock = clock
        self.started = clock()

    def _ms(self, since: float) -> int:
        return int(round((self.clock() - since) * 1000))

    def run(self, name: str, fn: Callable[[], Any]) -> Any:
        """Runs fn; on failure records the step and re-raises."""
        t0 = self.clock()
        t_from_start = self._ms(self.started)
        try:
            result = fn()
        except Exception as e:
            self.report.steps.append(StepResult(step=name, ok=False, duration_ms=self._ms(t0),
                                                t_from_start_ms=t_from_start, error=str(e)))
            raise
        self.report.steps.append(StepResult(step=name, ok=True, duration_ms=self._ms(t0), t_from_start_ms=t_from_start))
        return result

    def child(self, name: str, fn: Callable[[], Any]) -> Any:
        """Runs a child step; failures are recorded and logged, never propagated."""
        try:
            return self.run(name, fn)
        except Exception as e:
            warning = ChildSyncWarning(name, e)
            logger.warning(f"Record {self.report.source_id}: {warning.message}")
            return None

    def elapsed_ms(self) -> int:
        return self._ms(self.started)


class SyncEngine:
    def __init__(self, shopify, config: SyncConfig, collections: Optional[CollectionCache] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Wires the resolver and child synchronizers around one Shopify client."""
        self.shopify = shopify
        self.config = config
        self.clock = clock
        self.collections = collections or CollectionCache(shopify.list_collections)
        self.resolver = NaturalKeyResolver(shopify, self.collections)
        self.options = LinkedOptionSync(shopify, config.option_namespace)
        self.variants = VariantSync(shopify, self.resolver, self.options, config)
        self.inventory = InventoryReconciler(shopify)
        self.files = FileUploader(shopify)
        self.translations = TranslationSync(shopify, config.primary_locale)
        self.collection_sync = CollectionSync(
            shopify, self.resolver, self.collections, config.primary_locale,
            self.translations if config.sync_translations else None,
        )
        self.metafields = MetafieldSync(shopify, self.files, config,
                                        self.translations if config.sync_translations else None)
        self._redirects = SeenSet()

    # ------------------------------------------------------------------
    # Validation and payloads
    # ------------------------------------------------------------------
    def validate(self, record: SourceRecord):
        texts = record.texts_for(self.config.primary_locale)
        if not texts.name.strip():
            raise ValidationError("name", f"Record {record.id} has an empty title")
        if record.base_price < 0:
            raise ValidationError("base_price", f"Record {record.id} has a negative price ({record.base_price})")
        for variant in record.variants:
            if record.base_price + variant.price_delta < 0:
                raise ValidationError("price_delta", f"Record {record.id} variant '{variant.sku}' has a negative price")

    def build_product_input(self, record: SourceRecord, handle: str) -> ProductInput:
        texts = record.texts_for(self.config.primary_locale)
        return ProductInput(
            title=texts.name.strip(),
            handle=handle,
            description_html=texts.description or None,
            vendor=record.brand or None,
            product_type=record.product_type or None,
            tags=record.tags,
            category=self.config.category_default,
            seo_title=texts.meta_title or None,
            seo_description=texts.meta_description or None,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def upsert(self, record: SourceRecord) -> UpsertReport:
        """Lookup -> create/update root -> child steps. Never raises."""
        handle = record.handle(self.config.primary_locale)
        report = UpsertReport(source_id=record.id, handle=handle)
        steps = _StepRunner(report, self.clock)

        try:
            self.validate(record)
        except ValidationError as e:
            report.error = e.message
            report.elapsed_ms = steps.elapsed_ms()
            logger.error(f"KO {record.id} {e.message}")
            return report

        if self.config.dry_run:
            logger.info(f"DRY-RUN: Skipping {handle}")
            report.ok = True
            report.result = UpsertResult(action="dry-run")
            report.elapsed_ms = steps.elapsed_ms()
            return report

        try:
            product, created = self._upsert_root(record, handle, steps)
        except Exception as e:
            report.error = str(e)
            report.elapsed_ms = steps.elapsed_ms()
            logger.error(f"KO {record.id} {e}")
            return report

        report.ok = True
        report.result = UpsertResult(action="created" if created else "updated", product_id=product.id)
        self._sync_children(record, product, created, steps)

        report.elapsed_ms = steps.elapsed_ms()
        failed = [s.step for s in report.steps if not s.ok]
        if failed:
            logger.info(f"OK {record.id} {report.result.action} {product.id} (child failures: {', '.join(failed)})")
        else:
            logger.info(f"OK {record.id} {report.result.action} {product.id}")
        return report

    def _upsert_root(self, record: SourceRecord, handle: str, steps: _StepRunner) -> Tuple[ProductNode, bool]:
        existing = None
        if not self.config.insert_only:
            existing = steps.run("lookup", lambda: self.resolver.resolve_product(handle))
        payload = self.build_product_input(record, handle)
        if existing is None:
            product = steps.run("product_create", lambda: self.shopify.create_product(payload))
            return product, True
        update = ProductUpdate(id=existing.id, **payload.model_dump(exclude={"status"}))
        product = steps.run("product_update", lambda: self.shopify.update_product(update))
        return product, False

    def _sync_children(self, record: SourceRecord, product: ProductNode, created: bool, steps: _StepRunner):
        suffix = "create" if created else "update"
        state: Dict[str, Any] = {"product": product, "linked": {}}
        cfg = self.config

        def variants():
            state["product"], state["linked"] = self.variants.upsert(state["product"], record)

        plan: List[Tuple[str, bool, Callable[[], Any]]] = [
            ("variants", cfg.sync_variants, variants),
            ("source_metafields", True, lambda: self.metafields.set_source_metafields(state["product"], record)),
            ("publish", created and bool(cfg.publication_id), lambda: self.publish(state["product"])),
            ("images", cfg.sync_images, lambda: self.sync_images(state["product"], record)),
            ("redirects", True, lambda: self.sync_redirects(record, state["product"].handle or record.handle(cfg.primary_locale))),
            ("translations", cfg.sync_translations, lambda: self.translations.translate_product(state["product"], record)),
            ("i18n_options_values", cfg.sync_translations and cfg.sync_variants,
             lambda: self.translations.translate_options(state["product"], record, state["linked"])),
            ("variant_textures", cfg.sync_variants,
             lambda: self.metafields.sync_textures(state["product"], record, self.resolver, state["linked"])),
            ("collections", True, lambda: self.collection_sync.sync(state["product"], record)),
            ("features_metafields", True, lambda: self.metafields.sync_features(state["product"], record)),
            ("attachments", True, lambda: self.metafields.sync_attachments(state["product"], record)),
            ("inventory", cfg.sync_inventory and cfg.track_inventory and cfg.location_id is not None,
             lambda: self.sync_inventory(state["product"], record, state["linked"])),
        ]
        for name, enabled, fn in plan:
            if enabled:
                steps.child(f"{name}_{suffix}", fn)

    # ------------------------------------------------------------------
    # Child steps owned by the engine
    # ------------------------------------------------------------------
    def publish(self, product: ProductNode):
        self.shopify.publish_product(product.id, to_gid("Publication", self.config.publication_id))

    def sync_images(self, product: ProductNode, record: SourceRecord) -> int:
        """Positional: images beyond the ones already on the product are appended."""
        start = product.image_count
        added = 0
        for position, url in enumerate(record.image_urls[start:], start=start + 1):
            self.shopify.add_image(product.legacy_id, url, position)
            added += 1
        return added

    def sync_redirects(self, record: SourceRecord, handle: str) -> int:
        created = 0
        for locale, texts in record.texts.items():
            slug = texts.slug or slugify(texts.name)
            if not slug:
                continue
            legacy = f"{record.id}-{slug}.html"
            pairs = [
                (f"/{legacy}", f"/products/{handle}"),
                (f"/{locale}/{legacy}", f"/{locale}/products/{handle}"),
            ]
            for path, target in pairs:
                if (path, target) in self._redirects:
                    continue
                try:
                    self.shopify.create_redirect(path, target)
                    created += 1
                except TransportError as e:
                    # path already redirected by an earlier run
                    if e.status != 422:
                        raise
                self._redirects.add((path, target))
        return created

    def sync_inventory(self, product: ProductNode, record: SourceRecord, linked=None) -> int:
        fresh = self.shopify.get_product(product.id) or product
        items: List[Tuple[str, int]] = []
        if not record.option_order():
            if fresh.variants and fresh.variants[0].inventory_item_id:
                items.append((fresh.variants[0].inventory_item_id, self._quantity(record.quantity)))
        else:
            order = declared_option_order(fresh) or record.option_order()
            by_sku = {v.sku: v for v in fresh.variants if v.sku}
            keyed = self.resolver.variant_key_map(fresh, order)
            for variant in record.variants:
                node = by_sku.get(variant.sku) if variant.sku else None
                if node is None:
                    node = keyed.get(self.resolver.desired_variant_key(fresh, variant, order, linked))
                if node is None or not node.inventory_item_id:
                    logger.warning(f"[INV] variant '{variant.sku}' not found on {fresh.id}")
                    continue
                items.append((node.inventory_item_id, self._quantity(variant.quantity)))
        if not items:
            return 0
        outcomes = self.inventory.set_quantities(self.config.location_id, items)
        return sum(1 for o in outcomes if o.ok)

    def _quantity(self, quantity: int) -> int:
        if self.config.default_qty_if_in_stock is not None and quantity > 0:
            return self.config.default_qty_if_in_stock
        return max(int(quantity), 0)
# ============================================================================
# End of sync_engine.py — Version: 2.0.0
# ============================================================================
