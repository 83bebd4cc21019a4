"""
Batch execution of contact operations.

Groups operations into Graph JSON batch requests while the backend accepts
them, and falls back to paced one-by-one execution for the rest of the run
as soon as a batch submission is refused.
"""

import logging
import time
from typing import Any

from orgcontact_sync.api.graph_api import (
    RETRYABLE_STATUSES,
    BatchUnsupportedError,
    GraphAPIError,
    GraphClient,
    RunSession,
)
from orgcontact_sync.sync.operations import ContactOperation, OperationResult

# Graph accepts at most 20 requests per JSON batch
DEFAULT_BATCH_SIZE = 20
MAX_BATCH_SIZE = 20

# Pause between operations in sequential mode
DEFAULT_OPERATION_DELAY = 0.2  # seconds

BATCH_PATH = "/$batch"

logger = logging.getLogger(__name__)


class BatchExecutor:
    """
    Applies contact operations, batching when the backend supports it.

    The run session's batch_supported flag decides the mode. A refused
    batch clears it for the remainder of the run; it is never set back.

    Usage:
        executor = BatchExecutor(client)
        results = executor.execute_all(operations)
        failed = [r for r in results if not r.success]
    """

    def __init__(
        self,
        client: GraphClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        operation_delay: float = DEFAULT_OPERATION_DELAY,
    ):
        """
        Initialize the executor.

        Args:
            client: Graph client used for batch and sequential requests
            batch_size: Operations per batch request (capped at 20)
            operation_delay: Pacing delay between sequential operations
        """
        self.client = client
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.operation_delay = operation_delay

    @property
    def session(self) -> RunSession:
        return self.client.session

    def execute_all(self, operations: list[ContactOperation]) -> list[OperationResult]:
        """
        Execute every operation and report each outcome.

        Individual failures are captured in the results and never stop the
        remaining operations.

        Args:
            operations: Operations to apply, in order

        Returns:
            One OperationResult per operation, in input order
        """
        if not operations:
            return []

        results: list[OperationResult] = []
        position = 0

        while position < len(operations) and self.session.batch_supported:
            chunk = operations[position : position + self.batch_size]
            try:
                results.extend(self._submit_batch(chunk))
            except BatchUnsupportedError as e:
                logger.warning(
                    f"Batch requests unavailable ({e}); "
                    f"switching to sequential execution for the rest of the run"
                )
                self.session.disable_batching()
                break
            position += len(chunk)

        remaining = operations[position:]
        if remaining:
            results.extend(self._execute_sequential(remaining))

        succeeded = sum(1 for r in results if r.success)
        logger.debug(
            f"Executed {len(results)} operations: {succeeded} succeeded, "
            f"{len(results) - succeeded} failed"
        )
        return results

    def _submit_batch(self, chunk: list[ContactOperation]) -> list[OperationResult]:
        """
        Submit one batch request and correlate the responses.

        Raises:
            BatchUnsupportedError: If the batch submission itself fails
        """
        requests_body: list[dict[str, Any]] = []
        by_id: dict[str, ContactOperation] = {}

        for operation in chunk:
            method, url, body = operation.to_request()
            entry: dict[str, Any] = {
                "id": operation.tracking_id,
                "method": method,
                "url": url,
            }
            if body is not None:
                entry["body"] = body
                entry["headers"] = {"Content-Type": "application/json"}
            requests_body.append(entry)
            by_id[operation.tracking_id] = operation

        logger.debug(f"Submitting batch of {len(chunk)} operations")

        try:
            response = self.client.execute(
                "POST", BATCH_PATH, body={"requests": requests_body}
            )
        except GraphAPIError as e:
            raise BatchUnsupportedError(str(e)) from e

        if not isinstance(response, dict) or not isinstance(
            response.get("responses"), list
        ):
            raise BatchUnsupportedError("batch response has no 'responses' list")

        outcomes: dict[str, dict[str, Any]] = {}
        for item in response["responses"]:
            if isinstance(item, dict) and item.get("id") in by_id:
                outcomes[item["id"]] = item

        return [self._batch_result(op, outcomes.get(op.tracking_id)) for op in chunk]

    def _batch_result(
        self, operation: ContactOperation, outcome: dict[str, Any] | None
    ) -> OperationResult:
        """Turn one batch response entry into an OperationResult."""
        if outcome is None:
            logger.warning(f"No batch response for {operation.describe()}")
            return OperationResult(
                operation, success=False, error="missing from batch response"
            )

        status = int(outcome.get("status", 0))
        body = outcome.get("body")
        body = body if isinstance(body, dict) else None

        if 200 <= status < 300:
            return OperationResult(
                operation, success=True, status=status, response=body
            )

        if status in RETRYABLE_STATUSES:
            self.session.throttled = True

        message = f"HTTP {status}"
        error = body.get("error") if body else None
        if isinstance(error, dict) and error.get("message"):
            message = f"{message}: {error['message']}"
        logger.warning(f"Failed to {operation.describe()}: {message}")
        return OperationResult(
            operation, success=False, status=status, error=message, response=body
        )

    def _execute_sequential(
        self, operations: list[ContactOperation]
    ) -> list[OperationResult]:
        """Execute operations one at a time with a pacing delay."""
        results: list[OperationResult] = []
        total = len(operations)

        for index, operation in enumerate(operations, 1):
            method, url, body = operation.to_request()
            try:
                response = self.client.execute(method, url, body=body)
                results.append(
                    OperationResult(
                        operation,
                        success=True,
                        response=response if isinstance(response, dict) else None,
                    )
                )
            except GraphAPIError as e:
                status = getattr(e, "status", None)
                logger.warning(
                    f"[{index}/{total}] Failed to {operation.describe()}: {e}"
                )
                results.append(
                    OperationResult(
                        operation, success=False, status=status, error=str(e)
                    )
                )

            if index < total and self.operation_delay > 0:
                time.sleep(self.operation_delay)

        return results
