"""
Async transport for the LaBB-CAT REST API.

``LabbcatClient`` owns the HTTP session and implements the single request
primitive that every endpoint method delegates to. Requests never raise for
transport or server failures: each one settles into exactly one
:class:`~labbcat_cli.api.envelope.CallOutcome`.
"""

import asyncio
import logging
from typing import Any, Iterable, Mapping, NamedTuple, Optional
from urllib.parse import quote, urlencode

import aiohttp

from labbcat_cli.exceptions import TransportError
from labbcat_cli.models.config import DEFAULT_TIMEOUT_SECONDS, ClientConfig
from labbcat_cli.utils.path import filename_from_content_disposition

from .envelope import (
    CallOutcome,
    cancelled_outcome,
    failed_outcome,
    http_failure_outcome,
    normalize_response,
)

log = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


class BinaryResponse(NamedTuple):
    """Raw bytes returned by a media/fragment endpoint."""

    content: bytes
    filename: Optional[str] = None


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query(parameters: Optional[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """
    Flattens call parameters into ordered query pairs.

    Sequences become one pair per element, in order. ``None``, empty strings,
    ``False`` and empty sequences are left out entirely; ``0`` is a real value
    and is sent.
    """
    pairs: list[tuple[str, str]] = []
    if not parameters:
        return pairs
    for key, value in parameters.items():
        if value is None or value is False or value == "":
            continue
        if _is_sequence(value):
            pairs.extend((key, _format_value(v)) for v in value if v is not None)
        else:
            pairs.append((key, _format_value(value)))
    return pairs


def encode_query(parameters: Optional[Mapping[str, Any]]) -> str:
    """Returns the URL-encoded query string (without the leading '?')."""
    return urlencode(build_query(parameters), quote_via=quote)


class LabbcatClient:
    """
    Async client core for a LaBB-CAT server.

    Features:
    - Lazily created, pooled aiohttp session (or an injected one)
    - HTTP Basic authentication when a username is configured
    - Uniform CallOutcome results for JSON calls, raw bytes for media calls
    - Per-instance verbose request tracing through a standard logger
    """

    STORE_PATH = "api/store/"

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the client.

        Args:
            base_url: The LaBB-CAT base URL (i.e. the address of the 'home' link).
            username: The LaBB-CAT user name, or None for an open server.
            password: The LaBB-CAT password.
            session: An existing aiohttp session to use. It is not closed by the client.
            timeout_seconds: Socket read timeout for each request.
            verbose: Whether to trace requests and results to ``logger`` at DEBUG level.
            logger: Where diagnostic traces go. Defaults to this module's logger.
        """
        if not base_url.endswith("/"):
            base_url += "/"
        self._base_url = base_url
        self.store_url = base_url + self.STORE_PATH

        self._username: Optional[str] = username or None
        self._password: str = password or ""
        self.timeout_seconds = timeout_seconds
        self.verbose = verbose
        self._log = logger or log

        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any):
        """Builds a client from a validated configuration."""
        return cls(
            config.base_url,
            config.username,
            config.password,
            timeout_seconds=config.timeout_seconds,
            verbose=config.verbose,
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def username(self) -> Optional[str]:
        return self._username

    def _diag(self, message: str) -> None:
        if self.verbose:
            self._log.debug(message)

    def _headers(self, accept: str = JSON_MEDIA_TYPE) -> dict[str, str]:
        headers = {"Accept": accept}
        if self._username:
            headers["Authorization"] = aiohttp.BasicAuth(
                self._username, self._password
            ).encode()
        return headers

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=8,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": "labbcat-cli"},
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=15, sock_read=self.timeout_seconds
                ),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session, if the client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def request(
        self,
        call: str,
        parameters: Optional[Mapping[str, Any]] = None,
        url: Optional[str] = None,
        method: str = "GET",
        *,
        store_url: Optional[str] = None,
        json_body: Any = None,
    ) -> CallOutcome:
        """
        Issues one JSON API call.

        Args:
            call: The API function name. Appended to the store URL unless ``url`` is given.
            parameters: Query parameters; see :func:`build_query` for the encoding rules.
            url: An explicit URL (task, search and admin endpoints live outside the store).
            method: The HTTP method.
            store_url: The store URL to append ``call`` to, if not the read-only store.
            json_body: A JSON-serializable request body, for admin record calls.

        Returns:
            The normalized outcome. ``item_id`` echoes ``parameters["id"]`` if present.
            Cancelling the calling task while the request is in flight produces
            an outcome with the error ``"cancelled"`` instead of raising, and the
            task's cancellation request is withdrawn with ``Task.uncancel()``.
            Bodies that are not valid UTF-8 are decoded with replacement
            characters, so they surface as a parse error rather than an exception.
        """
        item_id = parameters.get("id") if parameters else None
        target = url or (store_url or self.store_url) + call
        query = build_query(parameters)
        self._diag(f"{method} {target}?{encode_query(parameters)} as {self._username}")

        kwargs: dict[str, Any] = {"params": query}
        if json_body is not None:
            kwargs["json"] = json_body
        return await self._dispatch(call, item_id, method, target, **kwargs)

    async def post_form(
        self,
        call: str,
        url: str,
        form: aiohttp.FormData,
        item_id: Optional[str] = None,
    ) -> CallOutcome:
        """Submits a multipart form and normalizes the JSON envelope it returns."""
        self._diag(f"POST {url} (multipart) as {self._username}")
        return await self._dispatch(call, item_id, "POST", url, data=form)

    async def _dispatch(
        self, call: str, item_id: Optional[str], method: str, url: str, **kwargs: Any
    ) -> CallOutcome:
        try:
            session = await self._initialize_session()
            async with session.request(
                method, url, headers=self._headers(), **kwargs
            ) as response:
                body = await response.text(errors="replace")
                status = response.status
                reason = response.reason
        except asyncio.CancelledError:
            self._diag(f"{call} cancelled")
            # the cancellation is consumed here, so withdraw the task's pending request
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            return cancelled_outcome(call, item_id)
        except asyncio.TimeoutError:
            self._diag(f"{call} timed out")
            return failed_outcome("request timed out", call, item_id)
        except (aiohttp.ClientError, OSError) as e:
            self._diag(f"{call} failed: {e!r}")
            return failed_outcome(str(e) or type(e).__name__, call, item_id)

        self._diag(f"{call} -> {status}: {body[:500]}")
        if status >= 400:
            return http_failure_outcome(status, reason, body, call, item_id)
        return normalize_response(body, call, item_id, diagnostic=self._diag)

    async def fetch_binary(
        self,
        url: str,
        parameters: Optional[Mapping[str, Any]],
        accept: str,
    ) -> BinaryResponse:
        """
        Downloads raw bytes from a media endpoint.

        Raises:
            TransportError: If the request fails or the server answers with a non-2xx status.
        """
        self._diag(f"GET {url}?{encode_query(parameters)} as {self._username}")
        try:
            session = await self._initialize_session()
            async with session.request(
                "GET", url, params=build_query(parameters), headers=self._headers(accept)
            ) as response:
                if response.status >= 400:
                    detail = (await response.text(errors="replace")).strip()
                    message = f"{response.status} {response.reason or ''}".strip()
                    if detail:
                        message = f"{message}: {detail}"
                    raise TransportError(message, status=response.status)
                content = await response.read()
                disposition = response.headers.get("Content-Disposition")
        except asyncio.TimeoutError as e:
            raise TransportError("request timed out") from e
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        return BinaryResponse(content, filename_from_content_disposition(disposition))


def as_list(values: Optional[Iterable[Any]]) -> list[Any]:
    """Materializes an optional iterable of IDs."""
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return list(values)
