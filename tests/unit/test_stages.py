"""
Unit tests for the built-in stages.
"""

import json
import logging

import pytest

from httpcontroller.config import ControllerConfig
from httpcontroller.errors import InvalidStatusError
from httpcontroller.finalizer import commit
from httpcontroller.flash import SESSION_KEY
from httpcontroller.helpers import redirect, text
from httpcontroller.stages import (
    AcceptFormats,
    AutoRender,
    FetchFlash,
    FetchSession,
    RequestLogging,
    format_from_accept,
    parse_accept,
)


class PageController:
    namespace = "page"
    accepted_formats = ("html", "text")


# =============================================================================
# FORMATS
# =============================================================================

class TestParseAccept:
    """Tests for Accept header parsing."""

    def test_q_ordering(self):
        """Test entries sort by q, ties keep header order."""
        parsed = parse_accept("text/html;q=0.5, text/plain, application/json;q=0.9")

        assert [media for media, _ in parsed] == ["text/plain", "application/json", "text/html"]

    def test_zero_q_dropped(self):
        assert parse_accept("text/html;q=0, text/plain") == [("text/plain", 1.0)]

    def test_bad_q_counts_as_one(self):
        assert parse_accept("text/html;q=abc") == [("text/html", 1.0)]


class TestFormatFromAccept:
    """Tests for format_from_accept()."""

    def test_first_accepted_match(self):
        header = "application/json, text/plain;q=0.8"
        assert format_from_accept(header, ("html", "text")) == "text"

    def test_wildcard_is_no_preference(self):
        assert format_from_accept("*/*", ("html", "text")) is None
        assert format_from_accept("application/xml, */*;q=0.1", ("html",)) is None

    def test_unaccepted_known_format_reported(self):
        """Test an explicit unaccepted format surfaces for a 406."""
        assert format_from_accept("application/xml", ("html", "text")) == "xml"

    def test_unknown_types_ignored(self):
        assert format_from_accept("image/png", ("html",)) is None


class TestAcceptFormats:
    """Tests for the AcceptFormats stage."""

    def test_unknown_format_rejected_at_construction(self):
        with pytest.raises(ValueError):
            AcceptFormats("html", "yaml")

    def test_records_accepted_and_requested(self, make_context):
        ctx = make_context(headers={"Accept": "text/plain"})
        AcceptFormats("html", "text")(ctx)

        assert ctx.accepted_formats == ("html", "text")
        assert ctx.requested_format == "text"

    def test_query_param_beats_accept_header(self, make_context):
        """Test ?_format= wins over Accept."""
        ctx = make_context(path="/?_format=text", headers={"Accept": "text/html"})
        AcceptFormats("html", "text")(ctx)

        assert ctx.requested_format == "text"

    def test_no_signal(self, make_context):
        ctx = make_context()
        AcceptFormats("html", "text")(ctx)

        assert ctx.requested_format is None

    def test_defaults_to_controller_formats(self, make_context):
        ctx = make_context()
        ctx.controller = PageController
        AcceptFormats()(ctx)

        assert ctx.accepted_formats == ("html", "text")

    def test_defaults_to_config_formats(self, make_context):
        ctx = make_context()
        ctx.private["config"] = ControllerConfig(accepted_formats=("json",))
        AcceptFormats()(ctx)

        assert ctx.accepted_formats == ("json",)


# =============================================================================
# SESSION AND FLASH
# =============================================================================

class TestFetchSession:
    """Tests for FetchSession and FetchFlash."""

    def test_session_saved_at_commit(self, make_context, session_store):
        """Test session changes survive to the next request."""
        ctx = make_context()
        FetchSession(session_store)(ctx)
        ctx.session["user_id"] = 42
        response = commit(ctx)

        cookie = response.header("Set-Cookie").split(";", 1)[0]
        following = make_context(headers={"Cookie": cookie})
        FetchSession(session_store)(following)

        assert following.session == {"user_id": 42}

    def test_store_from_context(self, make_context):
        """Test the endpoint's store is used when none is given."""
        ctx = make_context()
        FetchSession()(ctx)
        assert ctx.session == {}

    def test_no_store_anywhere(self, make_context):
        ctx = make_context()
        del ctx.private["session_store"]

        with pytest.raises(RuntimeError):
            FetchSession()(ctx)

    def test_flash_persisted_through_session(self, make_context):
        """Test flash serialized before the session is saved."""
        ctx = make_context()
        FetchSession()(ctx)
        FetchFlash()(ctx)
        ctx.flash.put("info", "Saved").persist("info")
        commit(ctx)

        assert ctx.session[SESSION_KEY] == {"info": ["Saved"]}

    def test_flash_hydrated_and_consumed(self, make_context):
        ctx = make_context()
        FetchSession()(ctx)
        ctx.session[SESSION_KEY] = {"info": ["Hello"]}
        FetchFlash()(ctx)

        assert ctx.flash.get("info") == "Hello"
        assert SESSION_KEY not in ctx.session

    def test_persist_on_redirect(self, make_context):
        """Test config.persist_flash_on_redirect keeps messages across a 302."""
        ctx = make_context()
        ctx.private["config"] = ControllerConfig(persist_flash_on_redirect=True)
        FetchSession()(ctx)
        FetchFlash()(ctx)
        ctx.flash.put("info", "Moved")
        redirect(ctx, to="/next")

        assert ctx.session[SESSION_KEY] == {"info": ["Moved"]}

    def test_persist_on_symbolic_redirect_status(self, make_context):
        """Test a 3xx given by name counts as a redirect."""
        ctx = make_context()
        ctx.private["config"] = ControllerConfig(persist_flash_on_redirect=True)
        FetchSession()(ctx)
        FetchFlash()(ctx)
        ctx.flash.put("info", "Moved")
        ctx.put_status("moved_permanently")
        redirect(ctx, to="/new")

        assert ctx.status == 301
        assert ctx.session[SESSION_KEY] == {"info": ["Moved"]}

    def test_invalid_status_saves_nothing(self, make_context, session_store):
        """Test a response rejected at commit does not write the session."""
        ctx = make_context()
        FetchSession()(ctx)
        ctx.session["user"] = "x"
        ctx.put_status(999)

        with pytest.raises(InvalidStatusError):
            text(ctx, "hi")
        assert len(session_store) == 0

    def test_no_persist_without_redirect(self, make_context):
        ctx = make_context()
        ctx.private["config"] = ControllerConfig(persist_flash_on_redirect=True)
        FetchSession()(ctx)
        FetchFlash()(ctx)
        ctx.flash.put("info", "Now")
        commit(ctx)

        assert SESSION_KEY not in ctx.session


# =============================================================================
# RENDERING
# =============================================================================

class TestAutoRender:
    """Tests for AutoRender."""

    def test_renders_action_template(self, make_context):
        ctx = make_context()
        ctx.controller = PageController
        ctx.action = "index"
        ctx.assign(title="Auto")

        AutoRender()(ctx)

        assert ctx.committed is True
        assert ctx.resp_body == b"<body><h1>Auto</h1></body>"

    def test_named_template(self, make_context):
        ctx = make_context()
        ctx.controller = PageController
        ctx.action = "index"
        ctx.assign(id=5)

        AutoRender("show")(ctx)
        assert ctx.resp_body == b"<body><p>Item 5</p></body>"

    def test_skips_committed_and_halted(self, make_context):
        ctx = make_context()
        ctx.action = "index"
        commit(ctx, b"already")
        AutoRender()(ctx)  # no DoubleCommitError

        halted = make_context().halt()
        AutoRender()(halted)
        assert halted.committed is False


# =============================================================================
# LOGGING
# =============================================================================

class TestRequestLogging:
    """Tests for RequestLogging."""

    def test_request_id_header(self, make_context):
        ctx = make_context()
        RequestLogging()(ctx)
        response = commit(ctx)

        request_id = ctx.private["request_id"]
        assert len(request_id) == 8
        assert response.header("X-Request-ID") == request_id

    def test_incoming_request_id_reused(self, make_context):
        ctx = make_context(headers={"X-Request-ID": "upstream1"})
        RequestLogging()(ctx)

        assert ctx.private["request_id"] == "upstream1"

    def test_text_access_line(self, make_context, caplog):
        ctx = make_context(path="/items")
        RequestLogging()(ctx)

        with caplog.at_level(logging.INFO, logger="httpcontroller.access"):
            commit(ctx, b"12345")

        line = [r for r in caplog.records if r.name == "httpcontroller.access"][-1].getMessage()
        assert '"GET /items" 200 5' in line

    def test_json_access_line(self, make_context, caplog):
        ctx = make_context(path="/items?page=2")
        ctx.controller = PageController
        ctx.action = "index"
        RequestLogging(log_format="json")(ctx)

        with caplog.at_level(logging.INFO, logger="httpcontroller.access"):
            ctx.put_status(404)
            commit(ctx)

        entry = json.loads([r for r in caplog.records if r.name == "httpcontroller.access"][-1].getMessage())
        assert entry["status_code"] == 404
        assert entry["path"] == "/items"
        assert entry["query"] == "page=2"
        assert entry["controller"] == "PageController"
        assert entry["action"] == "index"

    def test_skip_paths(self, make_context, caplog):
        ctx = make_context(path="/health")
        RequestLogging(skip_paths=["/health"])(ctx)

        with caplog.at_level(logging.INFO, logger="httpcontroller.access"):
            commit(ctx)

        assert not [r for r in caplog.records if r.name == "httpcontroller.access"]

    def test_invalid_log_format(self):
        with pytest.raises(ValueError):
            RequestLogging(log_format="xml")

    def test_log_format_from_config(self, make_context, caplog):
        """Test the stage follows config.log_format when given no format."""
        ctx = make_context(path="/items")
        ctx.private["config"] = ControllerConfig(log_format="json")
        RequestLogging()(ctx)

        with caplog.at_level(logging.INFO, logger="httpcontroller.access"):
            commit(ctx)

        entry = json.loads([r for r in caplog.records if r.name == "httpcontroller.access"][-1].getMessage())
        assert entry["path"] == "/items"

    def test_explicit_log_format_beats_config(self, make_context):
        ctx = make_context()
        ctx.private["config"] = ControllerConfig(log_format="json")

        assert RequestLogging(log_format="text").format_for(ctx) == "text"
        assert RequestLogging().format_for(ctx) == "json"
