"""
Authenticated XRPC sessions against a PDS.

XrpcSession wraps one ``httpx.AsyncClient`` per service URL and speaks the
XRPC conventions the PDS exposes: queries are GET ``/xrpc/<nsid>``,
procedures are POST ``/xrpc/<nsid>``, and errors come back as a JSON body
``{"error": ..., "message": ...}`` with a non-2xx status.

SessionPair bundles the old and new sessions with the account DID. It is
owned by exactly one Migration and released once, at teardown.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from pdsmigrate.config import MigratorConfig
from pdsmigrate.exceptions import XrpcError
from pdsmigrate.observability import (
    ATTR_HTTP_STATUS_CODE,
    ATTR_XRPC_NSID,
    ATTR_XRPC_SERVICE,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


class XrpcSession:
    """
    An XRPC client for one PDS, optionally logged in.

    Args:
        service: Base URL of the PDS (e.g. "https://bsky.social").
        config: HTTP settings (timeout, user agent, tracing).
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
        tracer: Optional tracer; created from ``config.enable_tracing`` if omitted.

    Example:
        >>> session = XrpcSession("https://bsky.social")
        >>> did = await session.login("alice.bsky.social", "hunter2")
        >>> prefs = await session.query("app.bsky.actor.getPreferences")
        >>> await session.logout()
    """

    def __init__(
        self,
        service: str,
        *,
        config: MigratorConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self._config = config or MigratorConfig()
        self._service = service.rstrip("/")
        self._tracer = tracer or create_tracer(__name__, self._config.enable_tracing)
        self._client = httpx.AsyncClient(
            base_url=self._service,
            timeout=self._config.request_timeout,
            headers={"User-Agent": self._config.user_agent},
            transport=transport,
        )
        self._access_jwt: str | None = None
        self._refresh_jwt: str | None = None
        self._did: str | None = None
        self._handle: str | None = None
        self._closed = False

    @property
    def service(self) -> str:
        return self._service

    @property
    def did(self) -> str | None:
        """DID of the logged-in account, if any."""
        return self._did

    @property
    def handle(self) -> str | None:
        return self._handle

    @property
    def is_authenticated(self) -> bool:
        return self._access_jwt is not None

    async def login(self, identifier: str, password: str) -> str:
        """
        Create a session with com.atproto.server.createSession.

        Args:
            identifier: Handle (or email) of the account.
            password: Account password.

        Returns:
            The DID of the account.

        Raises:
            XrpcError: If the PDS rejects the credentials.
        """
        data = await self.procedure(
            "com.atproto.server.createSession",
            {"identifier": identifier, "password": password},
            authenticated=False,
        )
        self._access_jwt = data.get("accessJwt")
        self._refresh_jwt = data.get("refreshJwt")
        self._did = data.get("did")
        self._handle = data.get("handle")
        if not self._access_jwt or not self._did:
            raise XrpcError(
                "com.atproto.server.createSession",
                200,
                detail="response did not contain a session",
            )
        logger.info("Logged into %s as %s", self._service, self._did)
        return self._did

    async def logout(self) -> None:
        """
        Delete the session (if any) and close the HTTP client. Idempotent.

        The client is closed even if deleteSession fails; the failure is
        re-raised afterwards.
        """
        if self._closed:
            return
        self._closed = True
        refresh_jwt = self._refresh_jwt
        self._access_jwt = None
        self._refresh_jwt = None
        try:
            if refresh_jwt is not None:
                await self._request(
                    "POST",
                    "com.atproto.server.deleteSession",
                    headers={"Authorization": f"Bearer {refresh_jwt}"},
                    authenticated=False,
                )
                logger.debug("Deleted session on %s", self._service)
        finally:
            await self._client.aclose()

    async def query(
        self,
        nsid: str,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call an XRPC query and return its JSON body."""
        response = await self._request("GET", nsid, params=params)
        return _json_body(response)

    async def get_bytes(
        self,
        nsid: str,
        params: Mapping[str, Any] | None = None,
    ) -> tuple[bytes, str | None]:
        """
        Call an XRPC query that returns binary content.

        Returns:
            The raw body and its Content-Type header, if present.
        """
        response = await self._request("GET", nsid, params=params)
        return response.content, response.headers.get("content-type")

    async def procedure(
        self,
        nsid: str,
        body: Mapping[str, Any] | None = None,
        *,
        content: bytes | None = None,
        encoding: str | None = None,
        headers: Mapping[str, str] | None = None,
        authenticated: bool = True,
    ) -> dict[str, Any]:
        """
        Call an XRPC procedure.

        Args:
            nsid: Method name, e.g. "com.atproto.repo.importRepo".
            body: JSON input, if the method takes one.
            content: Raw input bytes (mutually exclusive with ``body``).
            encoding: Content-Type for ``content``.
            headers: Extra headers; an Authorization header here replaces
                the session's access token.
            authenticated: Whether to send the session's access token.

        Returns:
            The JSON output, or an empty dict when the method returns nothing.
        """
        if body is not None and content is not None:
            raise ValueError("Pass either body or content, not both")
        request_headers = dict(headers or {})
        if content is not None and encoding:
            request_headers["Content-Type"] = encoding
        response = await self._request(
            "POST",
            nsid,
            json=dict(body) if body is not None else None,
            content=content,
            headers=request_headers,
            authenticated=authenticated,
        )
        return _json_body(response)

    async def _request(
        self,
        method: str,
        nsid: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        request_headers: dict[str, str] = {}
        if authenticated and self._access_jwt is not None:
            request_headers["Authorization"] = f"Bearer {self._access_jwt}"
        request_headers.update(headers or {})
        query = {k: v for k, v in (params or {}).items() if v is not None}

        with self._tracer.span(
            "pdsmigrate.xrpc",
            {ATTR_XRPC_NSID: nsid, ATTR_XRPC_SERVICE: self._service},
        ) as span:
            logger.debug("%s %s/xrpc/%s", method, self._service, nsid)
            response = await self._client.request(
                method,
                f"/xrpc/{nsid}",
                params=query,
                json=json,
                content=content,
                headers=request_headers,
            )
            if span is not None:
                span.set_attribute(ATTR_HTTP_STATUS_CODE, response.status_code)

        if response.is_error:
            raise _error_from_response(nsid, response)
        return response


def _json_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    data = response.json()
    return data if isinstance(data, dict) else {}


def _error_from_response(nsid: str, response: httpx.Response) -> XrpcError:
    error: str | None = None
    detail: str | None = None
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        detail = data.get("message")
    return XrpcError(nsid, response.status_code, error=error, detail=detail)


SessionFactory = Callable[[str], XrpcSession]
"""Creates an unauthenticated session for a service URL."""


def make_session_factory(
    config: MigratorConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> SessionFactory:
    """
    Build a SessionFactory that shares one configuration.

    Args:
        config: HTTP settings for every session.
        transport: Optional httpx transport for every session.

    Returns:
        A callable creating XrpcSession instances.
    """

    def factory(service: str) -> XrpcSession:
        return XrpcSession(service, config=config, transport=transport)

    return factory


@dataclass(frozen=True)
class SessionPair:
    """
    The sessions a migration works with.

    Attributes:
        old: Session on the PDS the account is leaving (logged in).
        new: Session on the PDS the account moves to (logged in once the
            account exists there).
        account_did: DID of the account being migrated.
    """

    old: XrpcSession
    new: XrpcSession
    account_did: str


__all__ = [
    "XrpcSession",
    "SessionFactory",
    "make_session_factory",
    "SessionPair",
]
