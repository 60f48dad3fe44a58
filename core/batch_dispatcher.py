import math
import logging

from typing import List
from typing import Optional

from core.exceptions import ApiResponseError
from core.exceptions import PartialAppendError
from data.models import BatchAppendResult
from data.models import RequestContext


logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 50


def append_blocks_in_batches(
    block_api,
    document_id: str,
    parent_block_id: str,
    blocks: List[dict],
    start_index: int,
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    context: Optional[RequestContext] = None
) -> BatchAppendResult:
    """Insert blocks under one parent through sequential create-children calls.

    Each batch is inserted at start_index plus the number of blocks already
    written, so a batch is only sent once the previous one committed. A failed
    batch stops the run; earlier batches stay in the document.

    Args:
        block_api: Object exposing `create_children` (see DocxApi).
        document_id: Document token.
        parent_block_id: Block receiving the children, usually the page block.
        blocks: Ordered block payloads.
        start_index: Child index of the first inserted block.
        max_batch_size: Maximum blocks per call.
        context: Optional authorization context.
    """

    if max_batch_size <= 0:
        raise ValueError("max_batch_size must be > 0")

    result = BatchAppendResult(next_index = start_index)
    if not blocks:
        return result

    total_batches = math.ceil(len(blocks) / max_batch_size)
    for offset in range(0, len(blocks), max_batch_size):
        batch = blocks[offset:offset + max_batch_size]
        index = start_index + result.inserted
        logger.info(
            "insert blocks: document_id = %s, block_id = %s, batch = %d/%d, index = %d, count = %d",
            document_id,
            parent_block_id,
            result.batches + 1,
            total_batches,
            index,
            len(batch)
        )
        try:
            block_api.create_children(
                document_id = document_id,
                block_id = parent_block_id,
                children = batch,
                index = index,
                context = context
            )
        except Exception as exc:
            logger.error(
                "insert blocks aborted: document_id = %s, batch = %d/%d, inserted = %d, err = %s",
                document_id,
                result.batches + 1,
                total_batches,
                result.inserted,
                str(exc)
            )
            raise PartialAppendError(
                (
                    f"Append failed at batch {result.batches + 1}/{total_batches} "
                    f"after inserting {result.inserted} of {len(blocks)} blocks: {exc}"
                ),
                inserted = result.inserted,
                batches_done = result.batches,
                code = exc.code if isinstance(exc, ApiResponseError) else None
            ) from exc

        result.inserted += len(batch)
        result.batches += 1
        result.batch_sizes.append(len(batch))
        result.next_index = start_index + result.inserted

    return result
