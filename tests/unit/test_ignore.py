"""Unit tests for the ignore registry."""

from __future__ import annotations

from pathlib import Path

from brigit.ignore import IgnoreRegistry, load_ignore_registry, parse_ignore_lines
from brigit.models import RepositoryTarget


def test_parse_ignore_lines_skips_comments_and_malformed_entries() -> None:
    """Only well-formed org:repo lines are registered."""
    registry = parse_ignore_lines(
        [
            "# legacy services",
            "",
            "acme:svc-b",
            "  beta : tools ",
            "no-separator",
            "acme:",
            ":svc-c",
        ]
    )
    assert len(registry) == 2
    assert registry.contains("acme", "svc-b")
    assert registry.contains("beta", "tools")
    assert not registry.contains("acme", "svc-c")


def test_contains_is_case_sensitive() -> None:
    """Lookups use the exact pair."""
    registry = IgnoreRegistry([RepositoryTarget("acme", "svc-b")])
    assert not registry.contains("ACME", "svc-b")
    assert RepositoryTarget("acme", "svc-b") in registry
    assert "acme:svc-b" not in registry


def test_missing_ignore_file_yields_empty_registry(tmp_path: Path) -> None:
    """The ignore list is optional."""
    assert len(load_ignore_registry(tmp_path / "repos-ignore.txt")) == 0
    assert len(load_ignore_registry(None)) == 0


def test_load_ignore_registry_reads_file(tmp_path: Path) -> None:
    """Entries are loaded from disk."""
    path = tmp_path / "repos-ignore.txt"
    path.write_text("acme:svc-b\n# acme:svc-c\n", encoding="utf-8")
    registry = load_ignore_registry(path)
    assert registry.contains("acme", "svc-b")
    assert not registry.contains("acme", "svc-c")
