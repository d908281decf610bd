# ============================================================================
#  batch_driver.py — Batch Cursor Driver
#  Version: 2.0.0
#  CHANGES: Stateless next(filter, cursor, batch_size) over the catalog
# ============================================================================
import logging
from typing import List

from errors import SyncError
from models import BatchFilter, BatchItem, BatchResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1


class BatchDriver:
    """
    Resumable iteration over the catalog.

    All progress lives in the cursor the caller passes back: the driver
    keeps no state between calls, never sleeps and never loops.
    """

    def __init__(self, source, engine):
        self.source = source
        self.engine = engine

    def total(self, filter_: BatchFilter) -> int:
        """Number of records a run with this filter will visit."""
        if filter_.product_ids:
            total = len(filter_.product_ids)
        else:
            total = self.source.count_filtered(filter_)
        total = max(total - filter_.offset, 0)
        if filter_.limit is not None:
            total = min(total, filter_.limit)
        return total

    def next(self, filter_: BatchFilter, cursor: int = 0, batch_size: int = DEFAULT_BATCH_SIZE) -> BatchResult:
        """
        Upserts the next slice of at most batch_size records.

        processed counts the records that synced ok and failed the ones that
        did not; cursor_next always advances past both.
        """
        cursor = max(int(cursor), 0)
        take = max(int(batch_size), 1)
        if filter_.limit is not None:
            remaining = filter_.limit - cursor
            if remaining <= 0:
                return BatchResult(cursor_next=cursor, finished=True)
            take = min(take, remaining)
        db_offset = filter_.offset + cursor

        items: List[BatchItem] = []
        try:
            if filter_.product_ids:
                ids = filter_.product_ids[db_offset:db_offset + take]
                found = {r.id: r for r in self.source.by_ids(ids)} if ids else {}
                batch = [(pid, found.get(pid)) for pid in ids]
            else:
                batch = [(r.id, r) for r in self.source.page_filtered(take, db_offset, filter_)]
        except SyncError as e:
            logger.error(f"Source read failed at cursor {cursor}: {e}")
            return BatchResult(ok=False, had_errors=True, cursor_next=cursor, error=str(e))

        for source_id, record in batch:
            if record is None:
                logger.error(f"KO {source_id} not found in source")
                items.append(BatchItem(source_id=source_id, ok=False, error=f"Record {source_id} not found in source"))
                continue
            report = self.engine.upsert(record)
            items.append(BatchItem(source_id=source_id, ok=report.ok, report=report, error=report.error))

        count = len(batch)
        cursor_next = cursor + count
        finished = count < take or (filter_.limit is not None and cursor_next >= filter_.limit)
        failed = sum(1 for i in items if not i.ok)
        return BatchResult(
            ok=True,
            had_errors=failed > 0,
            items=items,
            processed=count - failed,
            failed=failed,
            cursor_next=cursor_next,
            finished=finished,
        )
# ============================================================================
# End of batch_driver.py — Version: 2.0.0
# ============================================================================
