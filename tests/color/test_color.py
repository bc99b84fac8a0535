"""Tests for orgview.color utilities."""

from __future__ import annotations

import sys

import pytest

from orgview import color


def test_should_use_color_respects_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    """Explicit color flag should override TTY detection."""
    monkeypatch.setattr(sys.stdout, "isatty", lambda: False)

    assert color.should_use_color(True) is True
    assert color.should_use_color(False) is False


@pytest.mark.parametrize("is_tty", [True, False])
def test_should_use_color_uses_tty(monkeypatch: pytest.MonkeyPatch, is_tty: bool) -> None:
    """When flag is None, use TTY detection."""
    monkeypatch.setattr(sys.stdout, "isatty", lambda: is_tty)

    assert color.should_use_color(None) is is_tty


def test_colorize_noop_when_disabled() -> None:
    """colorize should return original text when disabled."""
    assert color.colorize("hello", "green", False) == "hello"


def test_colorize_wraps_when_enabled() -> None:
    """colorize should wrap text with a style tag when enabled."""
    assert color.colorize("hello", "green", True) == "[green]hello[/]"


def test_colorize_escapes_markup() -> None:
    """Text that looks like markup should be escaped."""
    assert color.colorize("[[a.org|a]]", "magenta", True) == "[magenta][\\[a.org|a]][/]"


def test_semantic_styles() -> None:
    """Identifiers, nulls, and headers should use their own styles."""
    assert color.identifier("a.org", True) == "[magenta]a.org[/]"
    assert color.identifier("a.org", False) == "a.org"
    assert color.null_value("-", True) == "[dim white]-[/]"
    assert color.header_style(True) == "bold white"
    assert color.header_style(False) is None
