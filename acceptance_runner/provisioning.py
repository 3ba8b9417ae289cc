"""Provisioning and tear down of test targets through provision tasks."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from rich.console import Console

from acceptance_runner.config import RunnerConfig
from acceptance_runner.loader import load_inventory, load_metadata, load_provision_list
from acceptance_runner.models.provision import TaskResult
from acceptance_runner.tasks import BoltTaskRunner, TaskRunnerError, run_local_command

log = logging.getLogger(__name__)

PROVISIONERS = frozenset(["abs", "docker", "docker_exp", "vagrant", "vmpooler"])


class UnknownProvisionerError(ValueError):
    """Raised when a provisioner name is not one we know how to drive."""


class MissingModuleError(FileNotFoundError):
    """Raised when a required task module is absent from the fixtures."""


class ProvisionError(RuntimeError):
    """Raised when one or more images could not be provisioned."""


def check_provisioner(provisioner: str) -> None:
    if provisioner not in PROVISIONERS:
        raise UnknownProvisionerError(
            f"Unknown provisioner '{provisioner}', "
            f"try {'/'.join(sorted(PROVISIONERS))}"
        )


async def prepare_fixtures(config: RunnerConfig, required_module: str) -> None:
    """Install fixture modules and make sure ``required_module`` is among them."""
    if config.prep_command:
        await run_local_command(config.prep_command, cwd=config.project_dir)

    modulepath = config.fixtures_modulepath
    if not (modulepath / required_module).is_dir():
        raise MissingModuleError(
            f"the {required_module} module was not found in {modulepath}, "
            "please amend the .fixtures.yml file"
        )


@dataclass(frozen=True, kw_only=True)
class ProvisioningCommands:
    """Creates and destroys targets, recording them in the inventory."""

    config: RunnerConfig
    task_runner: BoltTaskRunner
    console: Console

    async def provision(
        self, provisioner: str, platform: str, *, prepare: bool = True
    ) -> Sequence[TaskResult]:
        """Provision one target of ``platform`` and print what happened."""
        check_provisioner(provisioner)
        if prepare:
            await prepare_fixtures(self.config, "provision")

        log.info("Provisioning %s with %s", platform, provisioner)
        results = await self.task_runner.run_task(
            f"provision::{provisioner}",
            "localhost",
            {
                "action": "provision",
                "platform": platform,
                "inventory": str(self.config.project_dir),
            },
        )
        for result in results:
            if result.succeeded:
                self.console.out(f"{result.node_name}, {platform}")
            else:
                self.console.out(f"Failed {result.target}\n{result.model_dump()}")
        return results

    async def provision_list(self, key: str) -> None:
        """Provision every image listed under ``key`` in provision.yaml.

        All images are attempted before failures are reported.

        Raises:
            ProvisionError: If any image failed to provision

        """
        provision_list = await load_provision_list(self.config.provision_list_path)
        if key not in provision_list:
            raise ValueError(
                f"No '{key}' entry in {self.config.provision_list_path}, "
                f"available: {sorted(provision_list)}"
            )

        spec = provision_list[key]
        check_provisioner(spec.provisioner)
        await prepare_fixtures(self.config, "provision")

        failures: list[str] = []
        for image in spec.images:
            try:
                results = await self.provision(spec.provisioner, image, prepare=False)
            except TaskRunnerError as e:
                failures.append(f"=====\n{image}\n{e}\n")
                continue
            failures.extend(
                f"=====\n{image}\n{result.model_dump()}\n"
                for result in results
                if not result.succeeded
            )

        if failures:
            raise ProvisionError(
                f"Failed to provision with '{spec.provisioner}'\n {''.join(failures)}"
            )

    async def provision_from_metadata(self, provisioner: str) -> Sequence[TaskResult]:
        """Provision one target for every platform supported by the module."""
        check_provisioner(provisioner)
        metadata = await load_metadata(self.config.metadata_path)
        await prepare_fixtures(self.config, "provision")

        results: list[TaskResult] = []
        for platform in metadata.platforms():
            self.console.out(platform)
            results.extend(await self.provision(provisioner, platform, prepare=False))
        return results

    async def tear_down(self, target: str | None = None) -> Sequence[str]:
        """Decommission targets created by a known provisioner.

        Returns:
            One ``"<target>, <error>"`` line per target that failed

        """
        await prepare_fixtures(self.config, "provision")
        inventory = await load_inventory(self.config.inventory_path)

        bad_results: list[str] = []
        for node_name in inventory.find_targets(target):
            provisioner = inventory.facts_for(node_name).get("provisioner")
            if provisioner not in PROVISIONERS:
                log.debug("Skipping %s, not created by a known provisioner", node_name)
                continue

            try:
                results = await self.task_runner.run_task(
                    f"provision::{provisioner}",
                    "localhost",
                    {
                        "action": "tear_down",
                        "node_name": node_name,
                        "inventory": str(self.config.project_dir),
                    },
                )
            except TaskRunnerError as e:
                bad_results.append(f"{node_name}, {e}")
                continue

            if not results or not results[0].succeeded:
                message = results[0].error_message if results else "no result"
                bad_results.append(f"{node_name}, {message}")
            else:
                self.console.out(f"{node_name}, ", end="")

        self.console.out("")
        if bad_results:
            self.console.out("something went wrong:")
        for line in bad_results:
            self.console.out(line)
        return bad_results
