from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from app.core.errors import BatchResult, UpstreamUnavailableError

logger = logging.getLogger(__name__)


def chunked(items: Sequence[str], size: int) -> list[list[str]]:
    size = max(1, int(size))
    return [list(items[index : index + size]) for index in range(0, len(items), size)]


def run_in_waves(
    item_ids: Sequence[str],
    handler: Callable[[str], Any],
    *,
    chunk_size: int,
    pause_seconds: float,
    event: str,
    max_workers: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchResult:
    """Run ``handler`` for each id, ``chunk_size`` at a time, pausing between waves.

    Each handler call owns its own storage session; a failure is logged with the item id
    and counted as skipped. A non-empty batch where every item fails raises
    ``UpstreamUnavailableError``.
    """
    result = BatchResult()
    waves = chunked(item_ids, chunk_size)
    for wave_index, wave in enumerate(waves):
        with ThreadPoolExecutor(max_workers=min(len(wave), max_workers or len(wave))) as executor:
            futures = [(item_id, executor.submit(handler, item_id)) for item_id in wave]
            for item_id, future in futures:
                try:
                    outcome = future.result()
                except Exception as exc:
                    logger.exception(f"{event}_item_failed", extra={"contact_id": item_id})
                    result.record_failure(item_id, exc)
                    continue
                result.processed += 1
                if isinstance(outcome, dict):
                    result.items.append(outcome)
        if pause_seconds > 0 and wave_index < len(waves) - 1:
            sleep(pause_seconds)

    logger.info(
        f"{event}_completed",
        extra={"processed": result.processed, "skipped": result.skipped, "waves": len(waves)},
    )
    if item_ids and result.processed == 0:
        raise UpstreamUnavailableError(f"{event}: all {len(item_ids)} items failed")
    return result
