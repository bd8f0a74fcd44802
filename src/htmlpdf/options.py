# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Generation options and CDP print parameters."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .completion_triggers import CompletionTrigger

DEFAULT_CHROME_FLAGS = (
    "--disable-gpu",
    "--headless",
    "--hide-scrollbars",
)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9222

# Python field name -> Page.printToPDF parameter name
_PRINT_PARAM_NAMES = {
    "landscape": "landscape",
    "display_header_footer": "displayHeaderFooter",
    "print_background": "printBackground",
    "scale": "scale",
    "paper_width": "paperWidth",
    "paper_height": "paperHeight",
    "margin_top": "marginTop",
    "margin_bottom": "marginBottom",
    "margin_left": "marginLeft",
    "margin_right": "marginRight",
    "page_ranges": "pageRanges",
    "header_template": "headerTemplate",
    "footer_template": "footerTemplate",
    "prefer_css_page_size": "preferCSSPageSize",
}


@dataclass(frozen=True, slots=True)
class PrintOptions:
    """Page.printToPDF parameters. Unset fields fall back to Chromium defaults.

    Paper sizes and margins are in inches; Chromium defaults to US Letter
    (8.5 x 11) with ~0.4in margins.
    """

    landscape: bool | None = None
    display_header_footer: bool | None = None
    print_background: bool | None = None
    scale: float | None = None
    paper_width: float | None = None
    paper_height: float | None = None
    margin_top: float | None = None
    margin_bottom: float | None = None
    margin_left: float | None = None
    margin_right: float | None = None
    page_ranges: str | None = None  # e.g. "1-5, 8, 11-13"
    header_template: str | None = None
    footer_template: str | None = None
    prefer_css_page_size: bool | None = None

    def to_cdp(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        for field_name, cdp_name in _PRINT_PARAM_NAMES.items():
            value = getattr(self, field_name)
            if value is not None:
                params[cdp_name] = value
        return params


@dataclass(frozen=True)
class CreateOptions:
    """Options for one ``create()`` call. Immutable once generation starts.

    Setting ``host`` or ``port`` attaches to a running Chromium; otherwise
    one is launched for the request and killed afterwards.
    """

    host: str | None = None
    port: int | None = None
    executable_path: str | None = None
    chrome_flags: Sequence[str] | None = None
    timeout_ms: float | None = None  # None / <= 0: no deadline
    connect_timeout_ms: float = 30000
    clear_cache: bool = False
    cookies: Sequence[Mapping[str, Any]] | None = None  # CDP Network.CookieParam
    console_handler: Callable[[dict], Any] | None = None
    exception_handler: Callable[[dict], Any] | None = None
    completion_trigger: CompletionTrigger | None = None
    print_options: PrintOptions | Mapping[str, Any] | None = None

    @property
    def has_remote_target(self) -> bool:
        return bool(self.host or self.port)

    @property
    def endpoint_url(self) -> str:
        return f"http://{self.host or DEFAULT_HOST}:{self.port or DEFAULT_PORT}"

    @property
    def launch_flags(self) -> list[str]:
        return list(self.chrome_flags) if self.chrome_flags is not None else list(DEFAULT_CHROME_FLAGS)

    def with_port(self, port: int) -> CreateOptions:
        """Copy targeting a locally launched Chromium on *port*."""
        return dataclasses.replace(self, host=self.host or DEFAULT_HOST, port=port)

    def print_params(self) -> dict[str, Any]:
        if self.print_options is None:
            return {}
        if isinstance(self.print_options, PrintOptions):
            return self.print_options.to_cdp()
        return dict(self.print_options)

    @classmethod
    def from_env(cls, **overrides: Any) -> CreateOptions:
        """Build options from ``HTMLPDF_*`` variables; keyword overrides win."""
        values: dict[str, Any] = {}
        env_host = os.environ.get("HTMLPDF_HOST", "").strip()
        if env_host:
            values["host"] = env_host
        env_port = os.environ.get("HTMLPDF_PORT", "").strip()
        if env_port:
            values["port"] = int(env_port)
        env_chrome = os.environ.get("HTMLPDF_CHROME_PATH", "").strip()
        if env_chrome:
            values["executable_path"] = env_chrome
        env_timeout = os.environ.get("HTMLPDF_TIMEOUT_MS", "").strip()
        if env_timeout:
            values["timeout_ms"] = float(env_timeout)
        env_cache = os.environ.get("HTMLPDF_CLEAR_CACHE", "").strip().lower()
        if env_cache:
            values["clear_cache"] = env_cache in ("1", "true", "yes")
        values.update(overrides)
        return cls(**values)
