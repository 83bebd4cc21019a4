"""
Microsoft Graph API request executor for contact synchronization.

Provides the single point through which every Graph call is made:
- Bearer token injection from the run's token cache
- Exponential backoff retry for throttling and transient server errors
- Throttling detection recorded on the run session
- Pagination over @odata.nextLink continuation links
"""

import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, TypeVar

import requests

from orgcontact_sync.auth.token_provider import TokenCache

# Graph v1.0 endpoint
DEFAULT_API_BASE_URL = "https://graph.microsoft.com/v1.0"

# Statuses that mean "slow down" or "try again shortly"
RETRYABLE_STATUSES = frozenset({429, 503, 504})

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
INITIAL_RETRY_DELAY = 2.0  # seconds
MAX_RETRY_DELAY = 60.0  # seconds

# HTTP timeout for a single request
DEFAULT_TIMEOUT = 30.0  # seconds

# Items requested per page when listing collections ($top)
DEFAULT_PAGE_SIZE = 999

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GraphAPIError(Exception):
    """Raised when a Graph API operation fails."""

    pass


class RemoteAPIError(GraphAPIError):
    """Raised when the API rejects a request with a non-retryable status."""

    def __init__(self, status: int | None, message: str):
        self.status = status
        self.message = message
        if status is None:
            super().__init__(message)
        else:
            super().__init__(f"HTTP {status}: {message}")


class ThrottledExhaustedError(GraphAPIError):
    """Raised when throttling persists after all retries were used."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class BatchUnsupportedError(GraphAPIError):
    """Raised when the backend refuses a batch submission."""

    pass


@dataclass
class RunSession:
    """
    Mutable state shared by the components for the duration of one run.

    Attributes:
        tokens: Token cache holding the current access token
        batch_supported: Whether batch submissions are still attempted.
            Only ever goes from True to False within a run.
        throttled: Set whenever a retryable status is observed; the caller
            resets it before each target user.
    """

    tokens: TokenCache
    batch_supported: bool = True
    throttled: bool = False

    def disable_batching(self) -> None:
        """Stop attempting batch submissions for the rest of the run."""
        self.batch_supported = False

    def reset_throttled(self) -> None:
        self.throttled = False


class _TransientFailure(Exception):
    """A retryable outcome of a single HTTP attempt."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


def backoff_delay(
    attempt: int,
    initial_delay: float = INITIAL_RETRY_DELAY,
    max_delay: float = MAX_RETRY_DELAY,
) -> float:
    """
    Delay before retry number ``attempt`` (0-based).

    Starts at ``initial_delay`` and doubles each attempt, capped at
    ``max_delay``: 2, 4, 8, 16, 32, 60, 60, ...
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Avoid computing huge powers for large attempt numbers
    if attempt >= 32:
        return max_delay
    return min(initial_delay * (2**attempt), max_delay)


def retry_call(
    operation: Callable[[], T],
    retry_on: tuple[type[BaseException], ...],
    max_retries: int = DEFAULT_MAX_RETRIES,
    sleep: Callable[[float], None] | None = None,
    on_retry: Callable[[int, float, BaseException], None] | None = None,
) -> T:
    """
    Call ``operation`` until it succeeds or the retry budget is spent.

    Exceptions listed in ``retry_on`` trigger a backoff sleep and another
    attempt, up to ``max_retries`` retries after the first call. The last
    exception is re-raised on exhaustion; any other exception propagates
    immediately.

    Args:
        operation: Zero-argument callable to execute
        retry_on: Exception types that are worth retrying
        max_retries: Number of retries after the first attempt
        sleep: Sleep function (defaults to time.sleep)
        on_retry: Called with (retry number, delay, exception) before sleeping

    Returns:
        The operation's result
    """
    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= max_retries:
                raise
            delay = backoff_delay(attempt)
            if on_retry is not None:
                on_retry(attempt + 1, delay, e)
            (sleep or time.sleep)(delay)
            attempt += 1


def _error_message(response: requests.Response) -> str:
    """Extract the Graph error message from a failed response."""
    try:
        payload = response.json()
        error = payload.get("error", {})
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    except (ValueError, AttributeError):
        pass
    return response.text or response.reason or "no error detail"


class GraphClient:
    """
    Graph API request executor.

    Usage:
        session = RunSession(tokens=TokenCache(provider))
        client = GraphClient(session)

        me = client.execute("GET", "/users/alice@example.com")
        users = client.load_all("/users", select=["id", "mail"])
    """

    def __init__(
        self,
        session: RunSession,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        page_size: int = DEFAULT_PAGE_SIZE,
        http: requests.Session | None = None,
    ):
        """
        Initialize the Graph client.

        Args:
            session: Run session holding the token cache and run flags
            base_url: API root that relative paths are joined to
            timeout: Per-request timeout in seconds
            max_retries: Default retry budget for retryable statuses
            page_size: $top value used when listing collections
            http: requests session to use (one is created if None)
        """
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.page_size = page_size
        self.http = http if http is not None else requests.Session()

    def url_for(self, path: str) -> str:
        """Resolve a relative API path; absolute URLs are returned as-is."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None,
        params: dict[str, Any] | None,
    ) -> requests.Response:
        """Perform a single HTTP attempt."""
        token = self.session.tokens.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

        try:
            response = self.http.request(
                method,
                url,
                json=body,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise _TransientFailure(f"network error: {e}") from e
        except requests.RequestException as e:
            raise RemoteAPIError(None, f"{method} {url} request failed: {e}") from e

        if response.status_code in RETRYABLE_STATUSES:
            self.session.throttled = True
            raise _TransientFailure(
                f"status {response.status_code}", status=response.status_code
            )

        return response

    def execute(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """
        Issue one logical request, retrying throttled attempts.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: API path relative to base_url, or an absolute URL
            body: JSON body for POST/PATCH
            params: Query string parameters
            max_retries: Retry budget (default: client max_retries)

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            ThrottledExhaustedError: If 429/503/504 persists past the budget
            RemoteAPIError: For any other non-success status, or when the
                network keeps failing
            TokenAcquisitionError: If no access token can be obtained
        """
        retries = self.max_retries if max_retries is None else max_retries
        url = self.url_for(path)
        operation_name = f"{method} {path}"

        def log_retry(attempt: int, delay: float, error: BaseException) -> None:
            logger.warning(
                f"{operation_name} {error}, retrying in {delay:.1f}s "
                f"(retry {attempt}/{retries})"
            )

        try:
            response = retry_call(
                lambda: self._send(method, url, body, params),
                (_TransientFailure,),
                max_retries=retries,
                on_retry=log_retry,
            )
        except _TransientFailure as e:
            if e.status is None:
                logger.error(f"{operation_name} failed after {retries} retries: {e}")
                raise RemoteAPIError(
                    None, f"{operation_name} failed after {retries} retries: {e}"
                ) from e
            logger.error(f"{operation_name} still throttled after {retries} retries")
            raise ThrottledExhaustedError(
                f"Throttling persisted for {operation_name} after {retries} retries",
                status=e.status,
            ) from e

        if not 200 <= response.status_code < 300:
            message = _error_message(response)
            logger.debug(
                f"{operation_name} failed with status {response.status_code}: "
                f"{message}"
            )
            raise RemoteAPIError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(
                response.status_code, f"Invalid JSON from {operation_name}"
            ) from e

    def iter_pages(
        self, path: str, params: dict[str, Any] | None = None
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Yield each page of a collection, following continuation links.

        The sequence is lazy, finite and can be consumed only once.

        Args:
            path: Collection path or absolute URL
            params: Query parameters for the first page; continuation links
                already carry them

        Yields:
            The "value" list of each page
        """
        next_url: str | None = path
        page_params = params

        while next_url:
            payload = self.execute("GET", next_url, params=page_params) or {}
            yield payload.get("value", [])
            next_url = payload.get("@odata.nextLink")
            page_params = None

    def load_all(
        self,
        path: str,
        select: list[str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Drain a paginated collection into one list.

        Args:
            path: Collection path (e.g. "/users")
            select: Fields for $select
            params: Extra query parameters

        Returns:
            All items across all pages, in server order
        """
        query: dict[str, Any] = {"$top": self.page_size}
        if select:
            query["$select"] = ",".join(select)
        if params:
            query.update(params)

        items: list[dict[str, Any]] = []
        pages = 0
        for page in self.iter_pages(path, query):
            items.extend(page)
            pages += 1

        logger.debug(f"Loaded {len(items)} items from {path} ({pages} pages)")
        return items
