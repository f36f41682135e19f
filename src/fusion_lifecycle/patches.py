"""Serial patch sequencer.

Some attribute updates depend on each other (a volume's host access
policies must be cleared before it moves placement group) and the API
has no multi-field transaction, so patches are applied strictly one at a
time, in list order, each waited on to a terminal status. The first
failure stops the sequence; patches already applied stay applied.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from .errors import PatchSequenceError
from .models import Operation
from .operations import OperationReader, wait_on_operation
from .tracing import trace_error, trace_operation

logger = logging.getLogger(__name__)

P = TypeVar("P")


def execute_patches(
    apply: Callable[[P], Operation],
    patches: Sequence[P],
    client: OperationReader,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Apply ``patches`` in order, waiting for each to finish before the next.

    Args:
        apply: Submits one patch and returns the operation it started.
        patches: Opaque patch descriptors, applied in list order.
        client: Transport used by the poller.
        sleep: Blocking sleep taking seconds (injectable for tests).

    Raises:
        AzureError: If submitting a patch or polling its operation fails.
        PatchSequenceError: If a patch's operation ends in status Failed.
    """
    total = len(patches)
    for index, patch in enumerate(patches):
        logger.debug(
            "Start Operation to apply update",
            extra={"patch_idx": index, "patch_count": total, "patch": repr(patch)},
        )
        try:
            operation = apply(patch)
        except Exception as e:
            trace_error(e)
            raise
        trace_operation(operation, "resourceUpdate_patch")

        if not wait_on_operation(operation, client, sleep=sleep):
            logger.error(
                "Patch failed, aborting update sequence",
                extra={
                    "patch_idx": index,
                    "patch_count": total,
                    "patches_applied": index,
                    "op_id": operation.id,
                    "error_message": operation.error_message,
                },
            )
            raise PatchSequenceError(index, total, operation, patch)

    if total:
        logger.info("All patches applied", extra={"patch_count": total})
