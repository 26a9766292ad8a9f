"""
Adapters package for callkit.

Contains the collaborators the coordinator calls out to:

- Transport: sends a request and reports a response or a TransportError
- Identity: supplies the bearer credential attached to authenticated calls

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .transport import Transport, HttpxTransport
from .identity import IdentityProvider, TokenStore

__all__ = [
    "Transport",
    "HttpxTransport",
    "IdentityProvider",
    "TokenStore",
]
