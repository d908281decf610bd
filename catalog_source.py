# ============================================================================
#  catalog_source.py — Catalog Source Readers
#  Version: 2.0.0
#  CHANGES: Filtered count/page/by-id readers over a JSON export file or a
#           PIM export endpoint
# ============================================================================
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests
from pydantic import ValidationError as PydanticValidationError

from errors import SourceError
from models import BatchFilter, SourceRecord

logger = logging.getLogger(__name__)


def _parse_records(rows: List[Dict[str, Any]], origin: str) -> List[SourceRecord]:
    try:
        return [SourceRecord.model_validate(row) for row in rows]
    except PydanticValidationError as e:
        logger.error(f"Invalid catalog rows in {origin}: {e}")
        raise SourceError(f"Invalid catalog rows in {origin}", {"errors": e.errors()[:5]})


class CatalogSource(ABC):
    """Read-only access to the source of record."""

    @abstractmethod
    def count_filtered(self, filter_: BatchFilter) -> int:
        ...

    @abstractmethod
    def page_filtered(self, limit: int, offset: int, filter_: BatchFilter) -> List[SourceRecord]:
        ...

    @abstractmethod
    def by_ids(self, ids: Sequence[int]) -> List[SourceRecord]:
        ...


class JsonCatalogSource(CatalogSource):
    """Catalog exported as JSON: a list of records or {"products": [...]}."""

    def __init__(self, path: str):
        self.path = path
        self._records: Optional[List[SourceRecord]] = None

    def _load(self) -> List[SourceRecord]:
        if self._records is None:
            try:
                with open(self.path, "r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Cannot read catalog {self.path}: {e}")
                raise SourceError(f"Cannot read catalog {self.path}: {e}")
            rows = data.get("products", []) if isinstance(data, dict) else data
            self._records = sorted(_parse_records(rows, self.path), key=lambda r: r.id)
            logger.info(f"Catalog loaded: {len(self._records)} records from {self.path}")
        return self._records

    def _filtered(self, filter_: BatchFilter) -> List[SourceRecord]:
        records = self._load()
        if filter_.brand_id is not None:
            records = [r for r in records if r.brand_id == filter_.brand_id]
        return records

    def count_filtered(self, filter_: BatchFilter) -> int:
        return len(self._filtered(filter_))

    def page_filtered(self, limit: int, offset: int, filter_: BatchFilter) -> List[SourceRecord]:
        return self._filtered(filter_)[offset:offset + limit]

    def by_ids(self, ids: Sequence[int]) -> List[SourceRecord]:
        wanted = set(ids)
        return [r for r in self._load() if r.id in wanted]


class HttpCatalogSource(CatalogSource):
    """PIM export endpoint: GET /products, /products/count, /products?ids=..."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

        logger.info("=" * 80)
        logger.info("Catalog Source Configuration:")
        logger.info(f"  Base URL: {self.base_url}")
        logger.info(f"  API Key: {'*' * min(len(api_key or ''), 20)}... (hidden)")
        logger.info("=" * 80)

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"Catalog request failed: {url} {params}: {e}")
            raise SourceError(f"Catalog request failed: {e}", {"url": url})
        except ValueError as e:
            logger.error(f"Catalog returned invalid JSON: {url}: {e}")
            raise SourceError(f"Catalog returned invalid JSON: {e}", {"url": url})

    @staticmethod
    def _filter_params(filter_: BatchFilter) -> Dict[str, Any]:
        return {"brand_id": filter_.brand_id} if filter_.brand_id is not None else {}

    def count_filtered(self, filter_: BatchFilter) -> int:
        data = self._get("products/count", self._filter_params(filter_))
        return int(data.get("count", 0))

    def page_filtered(self, limit: int, offset: int, filter_: BatchFilter) -> List[SourceRecord]:
        params = {"limit": limit, "offset": offset, **self._filter_params(filter_)}
        data = self._get("products", params)
        return _parse_records(data.get("products", []), self.base_url)

    def by_ids(self, ids: Sequence[int]) -> List[SourceRecord]:
        if not ids:
            return []
        data = self._get("products", {"ids": ",".join(str(i) for i in ids)})
        return _parse_records(data.get("products", []), self.base_url)
# ============================================================================
# End of catalog_source.py — Version: 2.0.0
# ============================================================================
