"""
orgcontact_sync.auth - Access token acquisition for the Graph API
"""

from orgcontact_sync.auth.token_provider import (
    AuthenticationError,
    ClientCredentialsTokenProvider,
    TokenAcquisitionError,
    TokenCache,
    TokenProvider,
)

__all__ = [
    "AuthenticationError",
    "ClientCredentialsTokenProvider",
    "TokenAcquisitionError",
    "TokenCache",
    "TokenProvider",
]
