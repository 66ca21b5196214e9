"""
Unit tests for the template engines.
"""

import pytest

from httpcontroller.errors import TemplateNotFoundError
from httpcontroller.render import RenderKey
from httpcontroller.templates import FileSystemTemplateEngine, InMemoryTemplateEngine


class TestInMemoryTemplateEngine:
    """Tests for InMemoryTemplateEngine."""

    def test_substitution(self):
        engine = InMemoryTemplateEngine({"page/index.html": "<h1>$title</h1>"})
        key = RenderKey("page", "index", "html")

        assert engine.exists(key)
        assert engine.render(key, {"title": "Home"}) == "<h1>Home</h1>"

    def test_unknown_placeholders_left_alone(self):
        """Test safe substitution."""
        engine = InMemoryTemplateEngine({"t.text": "$known $unknown"})
        assert engine.render(RenderKey("", "t", "text"), {"known": "k"}) == "k $unknown"

    def test_none_renders_empty(self):
        engine = InMemoryTemplateEngine({"t.text": "[$value]"})
        assert engine.render(RenderKey("", "t", "text"), {"value": None}) == "[]"

    def test_callable_template(self):
        engine = InMemoryTemplateEngine().add("t.json", lambda assigns: {"n": assigns["n"]})
        assert engine.render(RenderKey("", "t", "json"), {"n": 1}) == {"n": 1}

    def test_missing(self):
        engine = InMemoryTemplateEngine()
        key = RenderKey("page", "missing", "html")

        assert engine.exists(key) is False
        with pytest.raises(TemplateNotFoundError) as exc_info:
            engine.render(key, {})
        assert exc_info.value.key is key


class TestFileSystemTemplateEngine:
    """Tests for FileSystemTemplateEngine."""

    @pytest.fixture
    def root(self, tmp_path):
        (tmp_path / "page").mkdir()
        (tmp_path / "page" / "index.html").write_text("<h1>$title</h1>", encoding="utf-8")
        (tmp_path.parent / "secret.html").write_text("secret", encoding="utf-8")
        return tmp_path

    def test_render_from_file(self, root):
        engine = FileSystemTemplateEngine(root)
        key = RenderKey("page", "index", "html")

        assert engine.exists(key)
        assert engine.render(key, {"title": "Disk"}) == "<h1>Disk</h1>"

    def test_missing_file(self, root):
        engine = FileSystemTemplateEngine(root)

        with pytest.raises(TemplateNotFoundError):
            engine.render(RenderKey("page", "nope", "html"), {})

    def test_cannot_escape_root(self, root):
        """Test ../ in a namespace does not reach outside the root."""
        engine = FileSystemTemplateEngine(root)
        key = RenderKey("..", "secret", "html")

        assert engine.exists(key) is False
        with pytest.raises(TemplateNotFoundError):
            engine.render(key, {})

    def test_cache_and_clear(self, root):
        """Test sources are cached until clear_cache()."""
        engine = FileSystemTemplateEngine(root)
        key = RenderKey("page", "index", "html")
        engine.render(key, {"title": "a"})

        (root / "page" / "index.html").write_text("<h2>$title</h2>", encoding="utf-8")
        assert engine.render(key, {"title": "a"}) == "<h1>a</h1>"

        engine.clear_cache()
        assert engine.render(key, {"title": "a"}) == "<h2>a</h2>"

    def test_cache_disabled(self, root):
        engine = FileSystemTemplateEngine(root, cache=False)
        key = RenderKey("page", "index", "html")
        engine.render(key, {"title": "a"})

        (root / "page" / "index.html").write_text("<h2>$title</h2>", encoding="utf-8")
        assert engine.render(key, {"title": "a"}) == "<h2>a</h2>"
