"""Runtime configuration resolved from the environment and CLI options."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt

DEFAULT_TEST_COMMAND = "bundle exec rspec ./spec/acceptance --format progress"
DEFAULT_PREP_COMMAND = "bundle exec rake spec_prep"
DEFAULT_BUILD_COMMAND = "pdk build --force"


def is_ci(environ: Mapping[str, str]) -> bool:
    """Check whether we are running under a continuous-integration system."""
    return environ.get("CI") == "true" or environ.get("DISTELLI_BUILDNUM") is not None


class RunnerConfig(BaseModel):
    """Configuration shared by all commands."""

    model_config = ConfigDict(frozen=True)

    project_dir: Path = Field(default_factory=Path.cwd)
    inventory_file: Path | None = None
    modulepath: Path | None = None
    test_command: str = DEFAULT_TEST_COMMAND
    target_variable: str = "TARGET_HOST"
    prep_command: str | None = DEFAULT_PREP_COMMAND
    build_command: str = DEFAULT_BUILD_COMMAND
    concurrency: PositiveInt | None = None
    timeout: PositiveFloat | None = None
    ci: bool = False

    @classmethod
    def from_environ(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "RunnerConfig":
        """Build configuration from environment state, dropping unset overrides."""
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {"ci": is_ci(environ)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def inventory_path(self) -> Path:
        return self.inventory_file or self.project_dir / "inventory.yaml"

    @property
    def fixtures_modulepath(self) -> Path:
        return self.modulepath or self.project_dir / "spec" / "fixtures" / "modules"

    @property
    def metadata_path(self) -> Path:
        return self.project_dir / "metadata.json"

    @property
    def provision_list_path(self) -> Path:
        return self.project_dir / "provision.yaml"

    @property
    def workers(self) -> int:
        """Upper bound on concurrently running test commands."""
        return self.concurrency or os.cpu_count() or 1
