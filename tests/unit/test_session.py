"""
Unit tests for session stores.
"""

import logging

import pytest

from httpcontroller.context import Context
from httpcontroller.session import (
    DEFAULT_COOKIE,
    CookieSessionStore,
    MemorySessionStore,
    cookie_header,
    read_cookie,
)


def with_cookie(value: str, name: str = DEFAULT_COOKIE) -> Context:
    return Context.build("GET", "/", headers={"Cookie": f"theme=dark; {name}={value}"})


class TestCookies:
    """Tests for cookie helpers."""

    def test_read_cookie(self):
        ctx = with_cookie("abc")
        assert read_cookie(ctx, DEFAULT_COOKIE) == "abc"
        assert read_cookie(ctx, "theme") == "dark"
        assert read_cookie(ctx, "missing") is None

    def test_read_cookie_without_header(self):
        assert read_cookie(Context(), DEFAULT_COOKIE) is None

    def test_cookie_header(self):
        header = cookie_header("sid", "v")
        assert header.startswith("sid=v")
        assert "HttpOnly" in header
        assert "Max-Age=0" in cookie_header("sid", "", max_age=0)


class TestCookieSessionStore:
    """Tests for CookieSessionStore."""

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            CookieSessionStore("")

    def test_round_trip_through_cookie(self):
        store = CookieSessionStore("s3cret")
        ctx = Context()
        store.save(ctx, {"user_id": 7})

        cookie = ctx.get_resp_header("Set-Cookie")[0].split(";", 1)[0]
        value = cookie.split("=", 1)[1]

        assert store.load(with_cookie(value)) == {"user_id": 7}

    def test_tampered_cookie_gives_empty_session(self, caplog):
        store = CookieSessionStore("s3cret")
        value = store.encode({"admin": False})
        forged = CookieSessionStore("other").encode({"admin": True})

        with caplog.at_level(logging.WARNING):
            assert store.load(with_cookie(forged)) == {}
        assert store.load(with_cookie(value + "x")) == {}
        assert "signature mismatch" in caplog.text

    def test_non_ascii_cookie_gives_empty_session(self, caplog):
        """Test a cookie with non-ASCII characters loads as empty instead of raising."""
        store = CookieSessionStore("s3cret")

        with caplog.at_level(logging.WARNING):
            assert store.load(with_cookie('"abc.\u00e9"')) == {}
            assert store.load(with_cookie('"\u00e9.x"')) == {}
        assert "signature mismatch" in caplog.text

    def test_empty_session_clears_cookie(self):
        store = CookieSessionStore("s3cret")
        ctx = with_cookie(store.encode({"a": 1}))
        store.save(ctx, {})

        assert "Max-Age=0" in ctx.get_resp_header("Set-Cookie")[0]

    def test_empty_session_without_cookie_sets_nothing(self):
        ctx = Context()
        CookieSessionStore("s3cret").save(ctx, {})
        assert ctx.get_resp_header("Set-Cookie") == []


class TestMemorySessionStore:
    """Tests for MemorySessionStore."""

    def test_new_session_gets_id_cookie(self):
        store = MemorySessionStore()
        ctx = Context()
        store.save(ctx, {"cart": [1]})

        session_id = ctx.private["session_id"]
        assert len(store) == 1
        assert ctx.get_resp_header("Set-Cookie")[0].startswith(f"{DEFAULT_COOKIE}={session_id}")
        assert store.load(with_cookie(session_id)) == {"cart": [1]}

    def test_loaded_session_is_a_copy(self):
        """Test request mutations don't leak into the store."""
        store = MemorySessionStore()
        ctx = Context()
        store.save(ctx, {"cart": [1]})
        session_id = ctx.private["session_id"]

        loaded = store.load(with_cookie(session_id))
        loaded["cart"].append(2)

        assert store.load(with_cookie(session_id)) == {"cart": [1]}

    def test_existing_session_no_new_cookie(self):
        store = MemorySessionStore()
        first = Context()
        store.save(first, {"n": 1})
        session_id = first.private["session_id"]

        second = with_cookie(session_id)
        store.load(second)
        store.save(second, {"n": 2})

        assert second.get_resp_header("Set-Cookie") == []
        assert store.load(with_cookie(session_id)) == {"n": 2}

    def test_unknown_id_gives_empty_session(self):
        assert MemorySessionStore().load(with_cookie("forged")) == {}

    def test_emptied_session_deleted(self):
        store = MemorySessionStore()
        first = Context()
        store.save(first, {"n": 1})
        session_id = first.private["session_id"]

        second = with_cookie(session_id)
        store.load(second)
        store.save(second, {})

        assert len(store) == 0
        assert "Max-Age=0" in second.get_resp_header("Set-Cookie")[0]
