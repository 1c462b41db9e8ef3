"""HTTP client for mdgrab."""

from .client import AsyncHttpClient, decode_body
from .protocols import HttpClient, HttpResponse

__all__ = [
    "AsyncHttpClient",
    "HttpClient",
    "HttpResponse",
    "decode_body",
]
