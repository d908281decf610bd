# ============================================================================
#  caches.py — Process-Lifetime Caches
#  Version: 2.0.0
#  CHANGES: Collection cache (lazy full load, append-only), file-id cache,
#           seen-set for idempotent one-shot calls
# ============================================================================
import logging
from typing import Callable, Dict, Hashable, List, Optional

from models import CollectionEntry

logger = logging.getLogger(__name__)


class CollectionCache:
    """
    handle -> collection for every collection on the store.

    Populated once, on first use, through the paginated listing; new
    collections are appended as they are created and never invalidated.
    """

    def __init__(self, loader: Callable[[], List[CollectionEntry]]):
        self._loader = loader
        self._by_handle: Optional[Dict[str, CollectionEntry]] = None

    @property
    def loaded(self) -> bool:
        return self._by_handle is not None

    def _ensure_loaded(self) -> Dict[str, CollectionEntry]:
        if self._by_handle is None:
            entries = self._loader()
            self._by_handle = {e.handle: e for e in entries}
            logger.info(f"Collection cache loaded: {len(self._by_handle)} entries")
        return self._by_handle

    def get(self, handle: str) -> Optional[CollectionEntry]:
        return self._ensure_loaded().get(handle)

    def add(self, entry: CollectionEntry):
        self._ensure_loaded()[entry.handle] = entry

    def __len__(self) -> int:
        return len(self._ensure_loaded())


class FileIdCache:
    """Source key (normalized URL or content hash) -> Shopify file GID."""

    def __init__(self):
        self._ids: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._ids.get(key)

    def put(self, key: str, file_id: str):
        self._ids[key] = file_id

    def __contains__(self, key: str) -> bool:
        return key in self._ids


class SeenSet:
    """Keys of calls already completed in this process (redirects, collects, definitions)."""

    def __init__(self):
        self._seen = set()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._seen

    def add(self, key: Hashable):
        self._seen.add(key)
# ============================================================================
# End of caches.py — Version: 2.0.0
# ============================================================================
