"""Tests for bearer-token / OIDC authentication and the origin check.

Covers:
- static token mode: missing, malformed, wrong and correct tokens
- OAuth mode: local JWKS file, remote JWKS and key-rotation refetch,
  issuer/audience mismatch, expired tokens, scope claim parsing, configuration errors
- check_origin allow-list semantics
"""

from __future__ import annotations

import json
import time
from pathlib import Path

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from codex_gateway.config.settings import AuthSettings
from codex_gateway.gateway.security import Authenticator, check_origin
from codex_gateway.infra.errors import AuthError

ISSUER = "https://issuer.test/"
AUDIENCE = "codex-mcp-gateway"


def _generate_keys(kid: str) -> tuple[str, dict]:
    """(private PEM, public JWK) for signing test tokens."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = kid
    return private_pem, public_jwk


@pytest.fixture(scope="module")
def rsa_keys() -> tuple[str, dict]:
    return _generate_keys("test-key")


def _token(private_pem: str, *, kid: str = "test-key", **overrides) -> str:
    claims = {
        "sub": "user-1",
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": int(time.time()) + 300,
        "scope": "mcp.pr.gate mcp.pr.merge",
    }
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


def _oauth_settings(tmp_path: Path, **overrides) -> AuthSettings:
    values = {
        "require_oauth": True,
        "oidc_issuer": ISSUER,
        "oidc_audience": AUDIENCE,
        "jwks_path": tmp_path / "jwks.json",
    }
    values.update(overrides)
    return AuthSettings(**values)


def _write_jwks(tmp_path: Path, public_jwk: dict) -> None:
    (tmp_path / "jwks.json").write_text(json.dumps({"keys": [public_jwk]}), encoding="utf-8")


# ---------------------------------------------------------------------------
# Static token mode
# ---------------------------------------------------------------------------


class TestStaticToken:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "Basic abc", "bearer secret"])
    async def test_missing_bearer_is_401(self, header) -> None:
        auth = Authenticator(AuthSettings(token="secret"))
        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(header)
        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Missing bearer token"

    @pytest.mark.asyncio
    async def test_wrong_token_is_403(self) -> None:
        auth = Authenticator(AuthSettings(token="secret"))
        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("Bearer nope")
        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "Invalid token"

    @pytest.mark.asyncio
    async def test_unconfigured_token_rejects_everything(self) -> None:
        auth = Authenticator(AuthSettings(token=None))
        with pytest.raises(AuthError):
            await auth.authenticate("Bearer anything")

    @pytest.mark.asyncio
    async def test_correct_token_has_no_scopes(self) -> None:
        principal = await Authenticator(AuthSettings(token="secret")).authenticate("Bearer secret")
        assert principal.scopes is None


# ---------------------------------------------------------------------------
# OAuth mode
# ---------------------------------------------------------------------------


class TestOAuth:
    @pytest.mark.asyncio
    async def test_valid_token_from_local_jwks(self, tmp_path, rsa_keys) -> None:
        private_pem, public_jwk = rsa_keys
        _write_jwks(tmp_path, public_jwk)
        auth = Authenticator(_oauth_settings(tmp_path))

        principal = await auth.authenticate(f"Bearer {_token(private_pem)}")

        assert principal.subject == "user-1"
        assert principal.scopes == frozenset({"mcp.pr.gate", "mcp.pr.merge"})
        assert principal.claims["iss"] == ISSUER

    @pytest.mark.asyncio
    async def test_missing_scope_claim_is_empty_set(self, tmp_path, rsa_keys) -> None:
        private_pem, public_jwk = rsa_keys
        _write_jwks(tmp_path, public_jwk)
        auth = Authenticator(_oauth_settings(tmp_path))

        principal = await auth.authenticate(f"Bearer {_token(private_pem, scope=None)}")

        assert principal.scopes == frozenset()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"iss": "https://other-issuer.test/"},
            {"aud": "someone-else"},
            {"exp": int(time.time()) - 60},
        ],
    )
    async def test_rejected_claims(self, tmp_path, rsa_keys, overrides) -> None:
        private_pem, public_jwk = rsa_keys
        _write_jwks(tmp_path, public_jwk)
        auth = Authenticator(_oauth_settings(tmp_path))

        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(f"Bearer {_token(private_pem, **overrides)}")

        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "Invalid token"
        assert exc_info.value.details

    @pytest.mark.asyncio
    async def test_garbage_token(self, tmp_path, rsa_keys) -> None:
        _write_jwks(tmp_path, rsa_keys[1])
        auth = Authenticator(_oauth_settings(tmp_path))
        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("Bearer not-a-jwt")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_remote_jwks_fetched_once(self, tmp_path, rsa_keys) -> None:
        private_pem, public_jwk = rsa_keys
        fetches: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            fetches.append(request)
            return httpx.Response(200, json={"keys": [public_jwk]})

        auth = Authenticator(
            _oauth_settings(tmp_path, oidc_jwks_url="https://issuer.test/jwks"),
            transport=httpx.MockTransport(handler),
        )

        await auth.authenticate(f"Bearer {_token(private_pem)}")
        await auth.authenticate(f"Bearer {_token(private_pem)}")

        assert len(fetches) == 1
        assert str(fetches[0].url) == "https://issuer.test/jwks"

    @pytest.mark.asyncio
    async def test_rotated_signing_key_triggers_refetch(self, tmp_path, rsa_keys) -> None:
        old_pem, old_jwk = rsa_keys
        new_pem, new_jwk = _generate_keys("rotated-key")
        published = {"keys": [old_jwk]}
        fetches: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            fetches.append(request)
            return httpx.Response(200, json=published)

        auth = Authenticator(
            _oauth_settings(tmp_path, oidc_jwks_url="https://issuer.test/jwks"),
            transport=httpx.MockTransport(handler),
            jwks_refresh_cooldown=0,
        )

        await auth.authenticate(f"Bearer {_token(old_pem)}")
        published = {"keys": [new_jwk]}
        principal = await auth.authenticate(f"Bearer {_token(new_pem, kid='rotated-key')}")
        await auth.authenticate(f"Bearer {_token(new_pem, kid='rotated-key')}")

        assert principal.subject == "user-1"
        assert len(fetches) == 2

    @pytest.mark.asyncio
    async def test_unknown_kid_refetch_respects_cooldown(self, tmp_path, rsa_keys) -> None:
        _, public_jwk = rsa_keys
        stranger_pem, _ = _generate_keys("unknown-key")
        fetches: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            fetches.append(request)
            return httpx.Response(200, json={"keys": [public_jwk]})

        auth = Authenticator(
            _oauth_settings(tmp_path, oidc_jwks_url="https://issuer.test/jwks"),
            transport=httpx.MockTransport(handler),
            jwks_refresh_cooldown=60,
        )

        for _ in range(3):
            with pytest.raises(AuthError) as exc_info:
                await auth.authenticate(f"Bearer {_token(stranger_pem, kid='unknown-key')}")
            assert exc_info.value.status_code == 403

        assert len(fetches) == 1

    @pytest.mark.asyncio
    async def test_unknown_kid_with_local_jwks_never_fetches(self, tmp_path, rsa_keys) -> None:
        _write_jwks(tmp_path, rsa_keys[1])
        stranger_pem, _ = _generate_keys("unknown-key")
        fetches: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            fetches.append(request)
            return httpx.Response(200, json={"keys": []})

        auth = Authenticator(
            _oauth_settings(tmp_path, oidc_jwks_url="https://issuer.test/jwks"),
            transport=httpx.MockTransport(handler),
            jwks_refresh_cooldown=0,
        )

        with pytest.raises(AuthError):
            await auth.authenticate(f"Bearer {_token(stranger_pem, kid='unknown-key')}")
        assert fetches == []

    @pytest.mark.asyncio
    async def test_remote_jwks_failure_is_403(self, tmp_path, rsa_keys) -> None:
        auth = Authenticator(
            _oauth_settings(tmp_path, oidc_jwks_url="https://issuer.test/jwks"),
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate(f"Bearer {_token(rsa_keys[0])}")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["oidc_issuer", "oidc_audience"])
    async def test_incomplete_oauth_config_is_500(self, tmp_path, missing) -> None:
        auth = Authenticator(_oauth_settings(tmp_path, **{missing: None}))
        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("Bearer x")
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "OAuth not properly configured"

    @pytest.mark.asyncio
    async def test_no_jwks_source_is_500(self, tmp_path) -> None:
        auth = Authenticator(_oauth_settings(tmp_path))
        with pytest.raises(AuthError) as exc_info:
            await auth.authenticate("Bearer x")
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "No JWKS source configured"


# ---------------------------------------------------------------------------
# Origin check
# ---------------------------------------------------------------------------


class TestCheckOrigin:
    @pytest.mark.parametrize(
        ("allowed", "origin"),
        [
            ([], "https://anywhere.test"),
            (["https://app.test"], None),
            (["https://app.test"], "https://app.test"),
        ],
    )
    def test_allowed(self, allowed, origin) -> None:
        check_origin(allowed, origin)

    def test_rejected(self) -> None:
        with pytest.raises(AuthError) as exc_info:
            check_origin(["https://app.test"], "https://evil.test")
        assert exc_info.value.status_code == 403
        assert str(exc_info.value) == "Origin not allowed"
