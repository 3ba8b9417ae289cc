"""Fixtures for module tests running real shell commands."""

from pathlib import Path

import pytest

INVENTORY = """
version: 2
groups:
  - name: docker_nodes
    facts:
      provisioner: docker
    targets:
      - uri: h1
        facts:
          platform: centos-7-x86_64
      - uri: h2
        facts:
          platform: ubuntu-1804-x86_64
      - uri: h3
        facts:
          platform: debian-10-x86_64
  - name: ssh_nodes
    targets: []
"""


@pytest.fixture
def module_dir(tmp_path: Path) -> Path:
    """Create a module directory with a three-target inventory."""
    (tmp_path / "inventory.yaml").write_text(INVENTORY)
    return tmp_path


@pytest.fixture(autouse=True)
def _no_ci(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make the run mode independent of the CI system running these tests."""
    monkeypatch.delenv("CI", raising=False)
    monkeypatch.delenv("DISTELLI_BUILDNUM", raising=False)
