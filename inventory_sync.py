# ============================================================================
#  inventory_sync.py — Inventory Reconciliation
#  Version: 2.0.0
#  CHANGES: Chunked absolute set, activate-and-retry for unstocked items
# ============================================================================
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from errors import SyncError
from models import InventoryOutcome, InventoryQuantityInput
from text_utils import to_gid

logger = logging.getLogger(__name__)

CHUNK_SIZE = 75
NOT_STOCKED = "ITEM_NOT_STOCKED_AT_LOCATION"


def _error_index(error: Dict) -> Optional[int]:
    # field paths look like ["input", "quantities", "12", "locationId"]
    for part in error.get("field") or []:
        if str(part).isdigit():
            return int(part)
    return None


class InventoryReconciler:
    def __init__(self, shop, chunk_size: int = CHUNK_SIZE):
        self.shop = shop
        self.chunk_size = chunk_size

    def set_quantities(self, location_id, items: Sequence[Tuple[str, int]]) -> List[InventoryOutcome]:
        """
        Sets absolute `available` quantities at one location.

        Items rejected as not stocked at the location are activated there
        and re-submitted in a second call restricted to them. Failures are
        logged and reported per item, never raised.
        """
        location = to_gid("Location", location_id)
        rows = [
            InventoryQuantityInput(inventory_item_id=to_gid("InventoryItem", item_id), location_id=location, quantity=qty)
            for item_id, qty in items
        ]
        outcomes = [InventoryOutcome(inventory_item_id=r.inventory_item_id, quantity=r.quantity, ok=True) for r in rows]

        for start in range(0, len(rows), self.chunk_size):
            chunk = rows[start:start + self.chunk_size]
            try:
                errors = self.shop.inventory_set_quantities(chunk)
            except SyncError as e:
                logger.warning(f"[INV] setQuantities chunk at {start} failed: {e}")
                self._fail(outcomes, range(start, start + len(chunk)), str(e))
                continue

            to_retry: Dict[int, InventoryQuantityInput] = {}
            for err in errors:
                idx = _error_index(err)
                if err.get("code") == NOT_STOCKED and idx is not None and idx < len(chunk):
                    to_retry[idx] = chunk[idx]
                elif idx is not None and idx < len(chunk):
                    logger.warning(f"[INV] non-retriable userError: {err}")
                    self._fail(outcomes, [start + idx], err.get("message", "user error"))
                else:
                    logger.warning(f"[INV] userError without item index: {err}")
                    self._fail(outcomes, range(start, start + len(chunk)), err.get("message", "user error"))

            if to_retry:
                self._activate_and_retry(start, to_retry, outcomes)

        ok = sum(1 for o in outcomes if o.ok)
        logger.info(f"[INV] {ok}/{len(outcomes)} quantities set at {location}")
        return outcomes

    def _activate_and_retry(self, start: int, to_retry: Dict[int, InventoryQuantityInput], outcomes: List[InventoryOutcome]):
        indexes = sorted(to_retry)
        for idx in indexes:
            row = to_retry[idx]
            try:
                errors = self.shop.inventory_activate(row.inventory_item_id, row.location_id, row.quantity)
            except SyncError as e:
                logger.warning(f"[INV] activate {row.inventory_item_id} failed: {e}")
                continue
            if errors:
                logger.warning(f"[INV] activate {row.inventory_item_id} userErrors: {errors}")
            else:
                outcomes[start + idx].activated = True

        retry_rows = [to_retry[i] for i in indexes]
        try:
            errors = self.shop.inventory_set_quantities(retry_rows)
        except SyncError as e:
            logger.warning(f"[INV] retry setQuantities failed: {e}")
            self._fail(outcomes, [start + i for i in indexes], str(e))
            return
        for err in errors:
            pos = _error_index(err)
            logger.warning(f"[INV] retry userError: {err}")
            if pos is not None and pos < len(indexes):
                self._fail(outcomes, [start + indexes[pos]], err.get("message", "user error"))
            else:
                self._fail(outcomes, [start + i for i in indexes], err.get("message", "user error"))

    @staticmethod
    def _fail(outcomes: List[InventoryOutcome], positions, message: str):
        for pos in positions:
            outcomes[pos].ok = False
            outcomes[pos].error = message
# ============================================================================
# End of inventory_sync.py — Version: 2.0.0
# ============================================================================
