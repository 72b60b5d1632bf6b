"""
LaBB-CAT API Layer.

This package handles all communication with a LaBB-CAT server's web API.
"""

# envelope has no intra-package imports and must load before the media package
from .envelope import CallOutcome
from .client import LabbcatClient, build_query, encode_query
from .store import LabbcatAdmin, LabbcatEdit, LabbcatView
from .view import normalize_search_pattern

__all__ = [
    "CallOutcome",
    "LabbcatAdmin",
    "LabbcatClient",
    "LabbcatEdit",
    "LabbcatView",
    "build_query",
    "encode_query",
    "normalize_search_pattern",
]
