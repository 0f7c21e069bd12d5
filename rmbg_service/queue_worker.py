"""
Batch worker.

Queue integrations (Redis, Kafka, a DB table) can hand decoded images or data
URLs to `process_batch` and reuse one shared remover, so the model is
downloaded and loaded at most once per batch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from PIL import Image

from .pipeline import BackgroundRemover, RemovalResult, ReturnMode, get_remover

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    image: Union[Image.Image, str]
    return_mode: ReturnMode = ReturnMode.BASE64


async def process_batch(
    items: Iterable[BatchItem],
    remover: Optional[BackgroundRemover] = None,
) -> List[RemovalResult]:
    """
    Process a batch of images concurrently on one remover.

    Returns results matching the input order. The first failure is raised
    once every item has finished.
    """
    remover = remover or get_remover()
    batch = list(items)
    logger.info("Processing batch of %d items", len(batch))
    results = await asyncio.gather(
        *(remover.remove_background(item.image, return_mode=item.return_mode) for item in batch),
        return_exceptions=True,
    )
    for index, outcome in enumerate(results):
        if isinstance(outcome, BaseException):
            logger.error("Batch item %d failed: %s", index, outcome)
            raise outcome
    return list(results)
