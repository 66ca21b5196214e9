"""
Unit tests for commit() and the response helpers.
"""

import json as jsonlib

import pytest

from httpcontroller.context import Context
from httpcontroller.errors import DoubleCommitError, InvalidStatusError, RedirectMisuseError
from httpcontroller.finalizer import commit, response_from
from httpcontroller.helpers import html, json, put_status, redirect, send_resp, text
from httpcontroller.http.status_codes import HTTPStatus


class TestCommit:
    """Tests for commit()."""

    def test_defaults_to_200(self):
        """Test an unset status commits as 200."""
        ctx = Context()
        response = commit(ctx, b"ok", "text/plain")

        assert ctx.committed is True
        assert ctx.status == HTTPStatus.OK
        assert response.status == HTTPStatus.OK
        assert response.body == b"ok"
        assert response.header("Content-Type") == "text/plain"

    def test_symbolic_status_resolved(self):
        """Test names resolve at commit."""
        ctx = Context()
        put_status(ctx, "created")

        assert commit(ctx).status == HTTPStatus.CREATED

    def test_invalid_status_fails_at_commit(self):
        """Test an unknown status is only rejected when committing."""
        ctx = Context()
        ctx.put_status(999)  # accepted here

        with pytest.raises(InvalidStatusError):
            commit(ctx)
        assert ctx.committed is False

    def test_invalid_status_runs_no_callbacks(self):
        """Test a rejected status leaves before-commit callbacks unrun and pending."""
        calls = []
        ctx = Context()
        ctx.register_before_commit(lambda c: calls.append("saved"))
        ctx.put_status(999)

        with pytest.raises(InvalidStatusError):
            commit(ctx)
        assert calls == []

        ctx.put_status(200)
        commit(ctx)
        assert calls == ["saved"]

    def test_status_changed_by_callback_is_checked(self):
        ctx = Context()
        ctx.register_before_commit(lambda c: c.put_status("no_such_status"))

        with pytest.raises(InvalidStatusError):
            commit(ctx)
        assert ctx.committed is False

    def test_double_commit(self):
        """Test a second commit fails and keeps the first response."""
        ctx = Context()
        commit(ctx, b"first")

        with pytest.raises(DoubleCommitError):
            commit(ctx, b"second")
        assert ctx.resp_body == b"first"

    def test_before_commit_callbacks_can_edit_response(self):
        """Test callbacks run while the response is still open."""
        ctx = Context()
        ctx.register_before_commit(lambda c: c.put_resp_header("X-Seen", "yes"))

        response = commit(ctx)
        assert response.header("X-Seen") == "yes"

    def test_callback_may_not_commit(self):
        """Test a callback that commits is reported."""
        ctx = Context()
        ctx.register_before_commit(lambda c: commit(c))

        with pytest.raises(DoubleCommitError):
            commit(ctx)

    def test_after_commit_sees_final_response(self):
        """Test after-commit callbacks run with status and body final."""
        ctx = Context()
        seen = []
        ctx.register_after_commit(lambda c: seen.append((int(c.status), c.resp_body)))

        commit(ctx, b"done")
        assert seen == [(200, b"done")]

    def test_response_from_requires_commit(self):
        with pytest.raises(ValueError):
            response_from(Context())


class TestRedirect:
    """Tests for redirect()."""

    def test_internal_redirect(self):
        """Test redirect(to=...) commits a 302 with Location and no body."""
        ctx = Context()
        response = redirect(ctx, to="/redirect_test")

        assert ctx.committed is True
        assert ctx.status == HTTPStatus.FOUND
        assert ctx.get_resp_header("location") == ["/redirect_test"]
        assert ctx.resp_body == b""
        assert response.status == 302

    def test_external_redirect(self):
        """Test redirect(external=...)."""
        ctx = Context()
        redirect(ctx, external="https://example.com/path?q=1")

        assert ctx.get_resp_header("Location") == ["https://example.com/path?q=1"]

    def test_status_set_before_redirect_kept(self):
        """Test a permanent redirect."""
        ctx = Context()
        put_status(ctx, 301)

        assert redirect(ctx, to="/new").status == HTTPStatus.MOVED_PERMANENTLY

    @pytest.mark.parametrize("kwargs", [
        {"to": "https://evil.example/"},
        {"to": "//evil.example/"},
        {"to": "relative/path"},
        {"external": "/redirect_test"},
        {"external": "javascript:alert(1)"},
        {},
        {"to": "/a", "external": "https://example.com/"},
    ])
    def test_misuse(self, kwargs):
        """Test wrong destination forms raise RedirectMisuseError."""
        ctx = Context()

        with pytest.raises(RedirectMisuseError):
            redirect(ctx, **kwargs)
        assert ctx.committed is False

    def test_redirect_after_render_fails(self):
        """Test redirecting a committed response."""
        ctx = Context()
        html(ctx, "<p>done</p>")

        with pytest.raises(DoubleCommitError):
            redirect(ctx, to="/")


class TestBodyHelpers:
    """Tests for text(), html(), json() and send_resp()."""

    def test_text(self):
        ctx = Context()
        response = text(ctx, "pong")

        assert response.body == b"pong"
        assert response.content_type == "text/plain; charset=utf-8"

    def test_html(self):
        response = html(Context(), "<p>hi</p>")
        assert response.content_type == "text/html; charset=utf-8"

    def test_json(self):
        """Test JSON keeps non-ASCII text readable."""
        response = json(Context(), {"name": "Zoë", "ok": True})

        assert response.content_type == "application/json; charset=utf-8"
        assert jsonlib.loads(response.body) == {"name": "Zoë", "ok": True}
        assert "Zoë".encode("utf-8") in response.body

    def test_send_resp(self):
        """Test raw responses."""
        ctx = Context()
        response = send_resp(ctx, "no_content")

        assert response.status == HTTPStatus.NO_CONTENT
        assert response.body == b""

    def test_send_resp_str_body(self):
        response = send_resp(Context(), 201, "made", "text/plain")

        assert response.status == 201
        assert response.body == b"made"
