"""
pytest configuration and fixtures.
"""

from typing import Dict
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpcontroller import (
    Context,
    ControllerConfig,
    Endpoint,
    InMemoryTemplateEngine,
    MemorySessionStore,
)


@pytest.fixture
def templates() -> InMemoryTemplateEngine:
    """Templates for the page namespace plus the default layout."""
    return InMemoryTemplateEngine({
        "layouts/app.html": "<body>$inner_content</body>",
        "layouts/admin.html": "<main>$inner_content</main>",
        "page/index.html": "<h1>$title</h1>",
        "page/index.text": "$title",
        "page/show.html": "<p>Item $id</p>",
        "page/show.text": "Item $id",
    })


@pytest.fixture
def config() -> ControllerConfig:
    """Default test configuration."""
    return ControllerConfig(accepted_formats=("html", "text"), log_level="WARNING")


@pytest.fixture
def session_store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def endpoint(config, templates, session_store) -> Endpoint:
    """Endpoint that re-raises, so tests see the original exception."""
    return Endpoint(config, templates, session_store, raise_errors=True)


@pytest.fixture
def make_context(config, templates, session_store):
    """
    Factory for contexts with the collaborators attached.

        ctx = make_context("GET", "/items?page=2", headers={"Accept": "text/plain"})
    """
    def factory(method: str = "GET", path: str = "/", headers: Dict[str, str] = None, body: bytes = b"") -> Context:
        ctx = Context.build(method, path, headers=headers, body=body)
        ctx.private["config"] = config
        ctx.private["templates"] = templates
        ctx.private["session_store"] = session_store
        return ctx

    return factory


@pytest.fixture
def cookies_from():
    """Turn a response's Set-Cookie headers into request headers carrying them."""
    def extract(response) -> Dict[str, str]:
        pairs = [value.split(";", 1)[0] for value in response.header_values("Set-Cookie")]
        return {"Cookie": "; ".join(pairs)} if pairs else {}

    return extract
