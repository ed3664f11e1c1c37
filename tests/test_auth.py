"""
Tests for auth.py — session token verification and request identity.
"""
from __future__ import annotations

import time

import jwt
import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

import auth
import config


class TestVerifyToken:
    def test_valid_token(self, make_token):
        assert auth.verify_token(make_token("user_a")) == "user_a"

    def test_expired_token(self, make_token):
        assert auth.verify_token(make_token("user_a", expires_in=-60)) is None

    def test_wrong_signature(self, auth_secret):
        token = jwt.encode(
            {"sub": "user_a", "exp": int(time.time()) + 60},
            "a-completely-different-secret-value-123",
            algorithm="HS256",
        )
        assert auth.verify_token(token) is None

    def test_missing_sub(self, auth_secret):
        token = jwt.encode({"exp": int(time.time()) + 60}, auth_secret, algorithm="HS256")
        assert auth.verify_token(token) is None

    def test_garbage(self, auth_secret):
        assert auth.verify_token("not.a.jwt") is None

    def test_unconfigured_is_anonymous(self, monkeypatch):
        monkeypatch.setattr(config, "AUTH_JWT_KEY", None)
        assert auth.verify_token("anything") is None

    def test_issuer_checked_when_configured(self, make_token, monkeypatch):
        monkeypatch.setattr(config, "AUTH_JWT_ISSUER", "https://auth.example.com")
        assert auth.verify_token(make_token("user_a")) is None


class TestTokenFrom:
    def test_bearer_header(self):
        req = make_mocked_request("GET", "/", headers={"Authorization": "Bearer abc"})
        assert auth._token_from(req) == "abc"

    def test_session_cookie(self):
        req = make_mocked_request("GET", "/", headers={"Cookie": f"{config.AUTH_SESSION_COOKIE}=xyz"})
        assert auth._token_from(req) == "xyz"

    def test_none(self):
        assert auth._token_from(make_mocked_request("GET", "/")) is None

    def test_other_scheme_ignored(self):
        req = make_mocked_request("GET", "/", headers={"Authorization": "Basic dXNlcg=="})
        assert auth._token_from(req) is None


class TestRequireUser:
    def test_returns_user(self):
        req = make_mocked_request("GET", "/")
        req["user_id"] = "user_a"
        assert auth.require_user(req) == "user_a"

    def test_anonymous_raises_401(self):
        req = make_mocked_request("GET", "/")
        req["user_id"] = None
        with pytest.raises(web.HTTPUnauthorized) as info:
            auth.require_user(req)
        assert '"Unauthorized"' in info.value.text
