"""Installation of the agent and the module under test onto targets."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from acceptance_runner.config import RunnerConfig
from acceptance_runner.loader import load_inventory
from acceptance_runner.provisioning import prepare_fixtures
from acceptance_runner.tasks import BoltTaskRunner, run_local_command

log = logging.getLogger(__name__)

AGENT_BIN_DIR = "/opt/puppetlabs/puppet/bin"
SSH_GROUP = "ssh_nodes"


class MissingPackageError(FileNotFoundError):
    """Raised when no built module package can be found."""


def find_latest_package(project_dir: Path) -> Path:
    """Return the most recently built ``pkg/*.tar.gz``."""
    packages = list((project_dir / "pkg").glob("*.tar.gz"))
    if not packages:
        raise MissingPackageError(f"Unable to find package in '{project_dir / 'pkg'}'")
    return max(packages, key=lambda p: p.stat().st_mtime)


@dataclass(frozen=True, kw_only=True)
class InstallationCommands:
    """Installs the agent and the built module on inventory targets."""

    config: RunnerConfig
    task_runner: BoltTaskRunner
    console: Console

    async def install_agent(
        self, collection: str | None = None, target: str | None = None
    ) -> Sequence[str]:
        """Install the agent on the targets.

        Returns:
            Names of targets where installation failed

        """
        inventory_path = self.config.inventory_path
        inventory = await load_inventory(inventory_path)
        targets = inventory.find_targets(target)
        await prepare_fixtures(self.config, "puppet_agent")

        params = {"collection": collection} if collection else {}
        results = await self.task_runner.run_task(
            "puppet_agent::install", targets, params, inventory=inventory_path
        )

        failed: list[str] = []
        for result in results:
            if result.succeeded:
                continue
            failed.append(result.target)
            command_to_run = (
                f"bolt task run puppet_agent::install --targets {result.target} "
                f"--inventoryfile {inventory_path} "
                f"--modulepath {self.config.fixtures_modulepath}"
            )
            self.console.out(
                f"Failed on {result.target}\n{result.model_dump()}\n"
                f"try running '{command_to_run}'"
            )

        if inventory.has_group(SSH_GROUP):
            path_results = await self.task_runner.run_command(
                f'echo PATH="$PATH:{AGENT_BIN_DIR}" > /etc/environment',
                SSH_GROUP,
                inventory=inventory_path,
            )
            for result in path_results:
                if not result.succeeded:
                    failed.append(result.target)
                    self.console.out(f"Failed on {result.target}\n{result.model_dump()}")

        return failed

    async def install_module(self, target: str | None = None) -> Sequence[str]:
        """Build the module, upload it and install it on the targets.

        Returns:
            Names of targets where installation failed

        Raises:
            MissingPackageError: If the build produced no package
            RuntimeError: If the build or upload fails

        """
        await run_local_command(self.config.build_command, cwd=self.config.project_dir)
        package = find_latest_package(self.config.project_dir)
        self.console.out("Built")

        inventory_path = self.config.inventory_path
        inventory = await load_inventory(inventory_path)
        targets = inventory.find_targets(target)
        remote_path = f"/tmp/{package.name}"

        uploads = await self.task_runner.upload_file(
            package, remote_path, target or "all", inventory=inventory_path
        )
        if failed_uploads := [r.target for r in uploads if not r.succeeded]:
            raise RuntimeError(
                f"Failed to upload {package.name} to {', '.join(failed_uploads)}"
            )

        install_command = f"puppet module install {remote_path}"
        results = await self.task_runner.run_command(
            install_command, targets, inventory=inventory_path
        )

        failed: list[str] = []
        for result in results:
            if not result.succeeded:
                failed.append(result.target)
                self.console.out(f"{result.target} failed {dict(result.value)}")

        self.console.out("Installed")
        return failed
