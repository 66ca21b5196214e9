"""
=============================================================================
CONTROLLER CONFIGURATION
=============================================================================

Settings for an Endpoint and the controllers it serves, in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     CONFIGURATION SOURCES                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. DEFAULTS (in this file)                                        │
    │      accepted_formats=("html",), default_layout="layouts/app"       │
    │                         │                                            │
    │                         ▼                                            │
    │   2. ENVIRONMENT (ControllerConfig.from_env())                      │
    │      HTTPCONTROLLER_FORMATS=html,json                               │
    │                         │                                            │
    │                         ▼                                            │
    │   3. CODE                                                            │
    │      ControllerConfig(debug=True)                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The configuration is explicit and owned by whoever builds the Endpoint;
there is no module-level mutable settings object. A controller class can
still override accepted_formats / layout for itself.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import os

from .http.mime_types import is_known_format


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _split(value: str) -> Tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


@dataclass
class ControllerConfig:
    """
    Controller layer configuration.

    Development:
        ControllerConfig(debug=True, log_level="DEBUG",
                         templates_dir="templates")

    Production:
        ControllerConfig(session_secret=os.environ["SECRET"],
                         log_format="json")
    """

    # ─────────────────────────────────────────────────────────────────────
    # FORMATS
    # ─────────────────────────────────────────────────────────────────────

    accepted_formats: Tuple[str, ...] = ("html",)
    """Formats a controller accepts unless it declares its own."""

    default_format: str = "html"
    """Format used when neither put_format nor the request chose one."""

    format_param: str = "_format"
    """Query parameter carrying an explicit format (?_format=json)."""

    # ─────────────────────────────────────────────────────────────────────
    # LAYOUTS AND TEMPLATES
    # ─────────────────────────────────────────────────────────────────────

    default_layout: Optional[str] = "layouts/app"
    """
    Layout wrapped around rendered templates, as "namespace/name".
    None disables layouts globally.
    """

    layout_formats: Tuple[str, ...] = ("html",)
    """Only these formats are wrapped in a layout."""

    templates_dir: Optional[str] = None
    """Root of a FileSystemTemplateEngine, when the Endpoint builds one."""

    # ─────────────────────────────────────────────────────────────────────
    # SESSION AND FLASH
    # ─────────────────────────────────────────────────────────────────────

    session_cookie: str = "_httpcontroller_session"
    session_secret: Optional[str] = None
    """Signing secret; when set the Endpoint uses a CookieSessionStore."""

    persist_flash_on_redirect: bool = False
    """
    Persist every flash key when a 3xx response commits, so a message set
    just before redirect() survives to the next page without an explicit
    persist().
    """

    # ─────────────────────────────────────────────────────────────────────
    # ERRORS AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    debug: bool = False
    """Expose error messages in error responses."""

    log_level: str = "INFO"
    log_format: str = "text"
    """'text' (Apache style access lines) or 'json'."""

    @classmethod
    def from_env(cls) -> "ControllerConfig":
        """
        Create configuration from environment variables.

            HTTPCONTROLLER_FORMATS          accepted formats, comma separated
            HTTPCONTROLLER_DEFAULT_FORMAT   default format
            HTTPCONTROLLER_LAYOUT           default layout ("" disables)
            HTTPCONTROLLER_TEMPLATES_DIR    template root
            HTTPCONTROLLER_SESSION_SECRET   cookie signing secret
            HTTPCONTROLLER_DEBUG            1/true/yes to enable
            HTTPCONTROLLER_LOG_LEVEL        logging level
            HTTPCONTROLLER_LOG_FORMAT       text or json
        """
        defaults = cls()
        layout = os.getenv("HTTPCONTROLLER_LAYOUT")
        formats = os.getenv("HTTPCONTROLLER_FORMATS")
        return cls(
            accepted_formats=_split(formats) if formats else defaults.accepted_formats,
            default_format=os.getenv("HTTPCONTROLLER_DEFAULT_FORMAT", defaults.default_format),
            default_layout=(layout or None) if layout is not None else defaults.default_layout,
            templates_dir=os.getenv("HTTPCONTROLLER_TEMPLATES_DIR"),
            session_secret=os.getenv("HTTPCONTROLLER_SESSION_SECRET"),
            debug=os.getenv("HTTPCONTROLLER_DEBUG", "").lower() in ("1", "true", "yes"),
            log_level=os.getenv("HTTPCONTROLLER_LOG_LEVEL", defaults.log_level),
            log_format=os.getenv("HTTPCONTROLLER_LOG_FORMAT", defaults.log_format),
        )

    def validate(self) -> None:
        """Fail fast at startup on settings that could only fail later, per request."""
        if not self.accepted_formats:
            raise ValueError("accepted_formats must not be empty")

        for name in (*self.accepted_formats, *self.layout_formats, self.default_format):
            if not is_known_format(name):
                raise ValueError(f"Unknown format: {name!r}")

        if not self.format_param:
            raise ValueError("format_param must not be empty")

        if self.default_layout is not None and "/" not in self.default_layout:
            raise ValueError(
                f"default_layout must be 'namespace/name', got {self.default_layout!r}"
            )

        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json'")
