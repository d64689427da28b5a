"""
Unit tests for XrpcSession, using httpx.MockTransport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from pdsmigrate.config import MigratorConfig
from pdsmigrate.exceptions import XrpcError
from pdsmigrate.observability import ATTR_XRPC_NSID, MockTracer
from pdsmigrate.session import SessionPair, XrpcSession, make_session_factory
from tests.fixtures import ACCOUNT_DID, OLD_PDS_URL, FakePds


@pytest.fixture
def pds() -> FakePds:
    return FakePds(OLD_PDS_URL)


class TestLogin:
    """Tests for login."""

    @pytest.mark.asyncio
    async def test_login_stores_session(self, pds: FakePds):
        session = pds.session()

        did = await session.login("alice.bsky.social", "old-password")

        assert did == ACCOUNT_DID
        assert session.did == ACCOUNT_DID
        assert session.handle == "alice.bsky.social"
        assert session.is_authenticated is True
        assert pds.json_bodies("com.atproto.server.createSession") == [
            {"identifier": "alice.bsky.social", "password": "old-password"}
        ]

    @pytest.mark.asyncio
    async def test_login_sends_no_authorization(self, pds: FakePds):
        session = pds.session()
        await session.login("alice.bsky.social", "old-password")

        request = pds.calls("com.atproto.server.createSession")[0]
        assert "authorization" not in request.headers

    @pytest.mark.asyncio
    async def test_login_failure_raises_xrpc_error(self, pds: FakePds):
        pds.fail("com.atproto.server.createSession", 401, "AuthenticationRequired")
        session = pds.session()

        with pytest.raises(XrpcError) as exc_info:
            await session.login("alice.bsky.social", "wrong")

        assert exc_info.value.status == 401
        assert exc_info.value.error == "AuthenticationRequired"
        assert session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_login_without_session_in_response(self, pds: FakePds):
        pds.route("com.atproto.server.createSession", {"handle": "alice.bsky.social"})

        with pytest.raises(XrpcError, match="did not contain a session"):
            await pds.session().login("alice.bsky.social", "old-password")


class TestRequests:
    """Tests for query, get_bytes and procedure."""

    @pytest.mark.asyncio
    async def test_query_sends_bearer_token_and_params(self, pds: FakePds):
        pds.route("app.bsky.actor.getPreferences", {"preferences": [{"$type": "x"}]})
        session = pds.session()
        await session.login("alice.bsky.social", "old-password")

        result = await session.query("app.bsky.actor.getPreferences", {"a": 1, "b": None})

        assert result == {"preferences": [{"$type": "x"}]}
        request = pds.calls("app.bsky.actor.getPreferences")[0]
        assert request.method == "GET"
        assert request.headers["authorization"] == f"Bearer access-{OLD_PDS_URL}"
        assert request.url.params["a"] == "1"
        assert "b" not in request.url.params

    @pytest.mark.asyncio
    async def test_get_bytes_returns_content_type(self, pds: FakePds):
        pds.route(
            "com.atproto.sync.getBlob",
            lambda request: httpx.Response(
                200, content=b"\x89PNG", headers={"Content-Type": "image/png"}
            ),
        )

        body, content_type = await pds.session().get_bytes(
            "com.atproto.sync.getBlob", {"cid": "bafk"}
        )

        assert body == b"\x89PNG"
        assert content_type == "image/png"

    @pytest.mark.asyncio
    async def test_procedure_posts_json(self, pds: FakePds):
        pds.route("com.atproto.server.deactivateAccount", lambda request: httpx.Response(200))

        result = await pds.session().procedure("com.atproto.server.deactivateAccount", {})

        assert result == {}
        request = pds.calls("com.atproto.server.deactivateAccount")[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {}

    @pytest.mark.asyncio
    async def test_procedure_posts_raw_content(self, pds: FakePds):
        pds.route("com.atproto.repo.importRepo", lambda request: httpx.Response(200))

        await pds.session().procedure(
            "com.atproto.repo.importRepo",
            content=b"car-bytes",
            encoding="application/vnd.ipld.car",
        )

        request = pds.calls("com.atproto.repo.importRepo")[0]
        assert request.content == b"car-bytes"
        assert request.headers["content-type"] == "application/vnd.ipld.car"

    @pytest.mark.asyncio
    async def test_explicit_authorization_header_wins(self, pds: FakePds):
        pds.route("com.atproto.server.createAccount", {"did": ACCOUNT_DID})
        session = pds.session()
        await session.login("alice.bsky.social", "old-password")

        await session.procedure(
            "com.atproto.server.createAccount",
            {"handle": "alice.bsky.social"},
            headers={"Authorization": "Bearer service-jwt"},
        )

        request = pds.calls("com.atproto.server.createAccount")[0]
        assert request.headers["authorization"] == "Bearer service-jwt"

    @pytest.mark.asyncio
    async def test_procedure_rejects_body_and_content(self, pds: FakePds):
        with pytest.raises(ValueError, match="either body or content"):
            await pds.session().procedure("x.y.z", {}, content=b"")

    @pytest.mark.asyncio
    async def test_error_without_json_body(self, pds: FakePds):
        pds.route("x.y.z", lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(XrpcError) as exc_info:
            await pds.session().query("x.y.z")

        assert exc_info.value.status == 502
        assert exc_info.value.error is None

    @pytest.mark.asyncio
    async def test_unknown_method(self, pds: FakePds):
        with pytest.raises(XrpcError, match="MethodNotImplemented"):
            await pds.session().query("x.y.unknown")

    @pytest.mark.asyncio
    async def test_requests_are_traced(self, pds: FakePds):
        tracer = MockTracer()
        session = XrpcSession(pds.service, transport=pds.transport, tracer=tracer)

        await session.login("alice.bsky.social", "old-password")

        assert tracer.span_names == ["pdsmigrate.xrpc"]
        _, attributes = tracer.spans[0]
        assert attributes[ATTR_XRPC_NSID] == "com.atproto.server.createSession"


class TestLogout:
    """Tests for logout."""

    @pytest.mark.asyncio
    async def test_logout_deletes_session_with_refresh_token(self, pds: FakePds):
        session = pds.session()
        await session.login("alice.bsky.social", "old-password")

        await session.logout()

        request = pds.calls("com.atproto.server.deleteSession")[0]
        assert request.headers["authorization"] == f"Bearer refresh-{OLD_PDS_URL}"
        assert session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, pds: FakePds):
        session = pds.session()
        await session.login("alice.bsky.social", "old-password")

        await session.logout()
        await session.logout()

        assert len(pds.calls("com.atproto.server.deleteSession")) == 1

    @pytest.mark.asyncio
    async def test_logout_without_login_only_closes(self, pds: FakePds):
        await pds.session().logout()
        assert pds.calls("com.atproto.server.deleteSession") == []

    @pytest.mark.asyncio
    async def test_logout_failure_is_raised(self, pds: FakePds):
        pds.fail("com.atproto.server.deleteSession", 500, "InternalServerError")
        session = pds.session()
        await session.login("alice.bsky.social", "old-password")

        with pytest.raises(XrpcError):
            await session.logout()

        # Closed anyway: a second logout does nothing.
        await session.logout()
        assert len(pds.calls("com.atproto.server.deleteSession")) == 1


class TestSessionFactory:
    """Tests for make_session_factory and SessionPair."""

    def test_factory_applies_config(self):
        factory = make_session_factory(MigratorConfig(user_agent="test-agent/1.0"))

        session = factory("https://pds.example.com/")

        assert isinstance(session, XrpcSession)
        assert session.service == "https://pds.example.com"

    @pytest.mark.asyncio
    async def test_factory_sends_user_agent(self, pds: FakePds):
        factory = make_session_factory(
            MigratorConfig(user_agent="test-agent/1.0", enable_tracing=False),
            transport=pds.transport,
        )

        await factory(pds.service).login("alice.bsky.social", "old-password")

        request = pds.calls("com.atproto.server.createSession")[0]
        assert request.headers["user-agent"] == "test-agent/1.0"

    def test_session_pair_is_frozen(self, pds: FakePds):
        pair = SessionPair(old=pds.session(), new=pds.session(), account_did=ACCOUNT_DID)
        with pytest.raises(AttributeError):
            pair.account_did = "did:plc:other"  # type: ignore[misc]
