"""
=============================================================================
TEMPLATE ENGINES
=============================================================================

The render dispatcher does not implement a templating language. It hands a
resolution key and the assigns to a TemplateEngine and gets back the
rendered output:

    RenderKey("page", "index", "html")
        │
        ▼
    engine.render(key, assigns) ──► "<h1>Welcome</h1>"      (str / bytes)
                                ──► {"items": [...]}        (dict / list,
                                                             JSON-encoded
                                                             by the caller)
                                ──► TemplateNotFoundError   (no such key)

Two engines ship with the package:

    InMemoryTemplateEngine    templates registered in code, strings or
                              callables; useful for tests and JSON views
    FileSystemTemplateEngine  files under a root directory, laid out as
                              <namespace>/<template>.<format>, rendered
                              with string.Template

=============================================================================
"""

from abc import ABC, abstractmethod
from pathlib import Path
from string import Template
from typing import Any, Callable, Dict, Mapping, Union
import logging
import os
import threading

from .errors import TemplateNotFoundError


logger = logging.getLogger(__name__)


Rendered = Union[str, bytes, dict, list]
TemplateSource = Union[str, Callable[[Mapping[str, Any]], Rendered]]


class TemplateEngine(ABC):
    """Narrow interface to whatever renders templates."""

    @abstractmethod
    def render(self, key, assigns: Mapping[str, Any]) -> Rendered:
        """
        Render the template identified by key.

        Args:
            key: A RenderKey (namespace, template, format); key.path is
                 "namespace/template.format"
            assigns: Values available to the template

        Raises:
            TemplateNotFoundError: If no template exists for key
        """

    @abstractmethod
    def exists(self, key) -> bool:
        ...


def _substitute(source: str, assigns: Mapping[str, Any]) -> str:
    # safe_substitute leaves unknown placeholders in place instead of raising
    return Template(source).safe_substitute({k: "" if v is None else v for k, v in assigns.items()})


class InMemoryTemplateEngine(TemplateEngine):
    """
    Templates held in a dict keyed by path ("page/index.html").

    A value is either a string.Template source or a callable receiving the
    assigns:

        engine = InMemoryTemplateEngine({
            "page/index.html": "<h1>$title</h1>",
            "page/index.json": lambda assigns: {"title": assigns["title"]},
        })
    """

    def __init__(self, templates: Dict[str, TemplateSource] = None):
        self._templates: Dict[str, TemplateSource] = dict(templates or {})

    def add(self, path: str, source: TemplateSource) -> "InMemoryTemplateEngine":
        self._templates[path] = source
        return self

    def exists(self, key) -> bool:
        return key.path in self._templates

    def render(self, key, assigns: Mapping[str, Any]) -> Rendered:
        try:
            source = self._templates[key.path]
        except KeyError:
            raise TemplateNotFoundError(key) from None

        if callable(source):
            return source(assigns)
        return _substitute(source, assigns)


class FileSystemTemplateEngine(TemplateEngine):
    """
    Templates read from files below a root directory.

    File sources are cached after the first read; the cache is shared by
    all request threads, hence the lock.
    """

    def __init__(self, root: Union[str, Path], cache: bool = True):
        self.root = os.path.realpath(root)
        self._cache_enabled = cache
        self._cache: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _file_for(self, key) -> str:
        path = os.path.realpath(os.path.join(self.root, key.path))
        # A template name like "../../etc/passwd" must not escape the root.
        if not path.startswith(self.root + os.sep):
            raise TemplateNotFoundError(key)
        return path

    def exists(self, key) -> bool:
        try:
            return os.path.isfile(self._file_for(key))
        except TemplateNotFoundError:
            return False

    def _load(self, key) -> str:
        path = self._file_for(key)

        with self._lock:
            cached = self._cache.get(path)
        if cached is not None:
            return cached

        try:
            with open(path, "r", encoding="utf-8") as f:
                source = f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise TemplateNotFoundError(key) from None

        logger.debug(f"Loaded template {key.path}")
        if self._cache_enabled:
            with self._lock:
                self._cache[path] = source
        return source

    def render(self, key, assigns: Mapping[str, Any]) -> Rendered:
        return _substitute(self._load(key), assigns)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
