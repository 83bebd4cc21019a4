"""
orgcontact_sync.api - Microsoft Graph request and batch execution
"""

from orgcontact_sync.api.batch import BatchExecutor
from orgcontact_sync.api.graph_api import (
    BatchUnsupportedError,
    GraphAPIError,
    GraphClient,
    RemoteAPIError,
    RunSession,
    ThrottledExhaustedError,
    backoff_delay,
    retry_call,
)

__all__ = [
    "BatchExecutor",
    "BatchUnsupportedError",
    "GraphAPIError",
    "GraphClient",
    "RemoteAPIError",
    "RunSession",
    "ThrottledExhaustedError",
    "backoff_delay",
    "retry_call",
]
