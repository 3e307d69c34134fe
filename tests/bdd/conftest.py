"""Shared fixtures for behaviour-driven CLI tests."""

from __future__ import annotations

import dataclasses
import json
import typing as typ

import pytest

from brigit import cli
from tests.helpers.protection import FakeProtectionClient

if typ.TYPE_CHECKING:
    from pathlib import Path


@dataclasses.dataclass
class RunResult:
    """Record CLI invocation results."""

    stdout: str
    returncode: int


@dataclasses.dataclass
class BrigitWorkspace:
    """Files and fake API state backing one scenario."""

    root: Path
    client: FakeProtectionClient
    policies: dict[str, dict[str, typ.Any]] = dataclasses.field(default_factory=dict)
    ignored: list[str] = dataclasses.field(default_factory=list)

    def write(self) -> None:
        """Flush the policy document and ignore list to disk."""
        (self.root / "ghbranchprotection.json").write_text(
            json.dumps(self.policies, indent=2), encoding="utf-8"
        )
        (self.root / "repos-ignore.txt").write_text(
            "".join(f"{entry}\n" for entry in self.ignored), encoding="utf-8"
        )


@pytest.fixture
def brigit_workspace(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> BrigitWorkspace:
    """Isolate the scenario in tmp_path with an in-memory GitHub."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("GITHUB_TOKEN", "token")
    for name in ("GITHUB_API_URL", "BRIGIT_CONFIG", "BRIGIT_IGNORE_FILE"):
        monkeypatch.delenv(name, raising=False)
    client = FakeProtectionClient()

    def factory(**kwargs: object) -> FakeProtectionClient:
        return client

    monkeypatch.setattr(cli, "GithubProtectionClient", factory)
    return BrigitWorkspace(root=tmp_path, client=client)


@pytest.fixture
def cli_invocation() -> dict[str, RunResult]:
    """Collect the result of running the CLI within a scenario."""
    return {}
