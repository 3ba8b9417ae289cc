"""Tests for provisioning commands."""

import io
import json
from pathlib import Path
from unittest.mock import Mock

import pytest
from rich.console import Console

from acceptance_runner.config import RunnerConfig
from acceptance_runner.models.provision import TaskResult
from acceptance_runner.provisioning import (
    MissingModuleError,
    ProvisionError,
    ProvisioningCommands,
    UnknownProvisionerError,
    prepare_fixtures,
)
from acceptance_runner.tasks import BoltTaskRunner, TaskRunnerError

INVENTORY = """
version: 2
groups:
  - name: docker_nodes
    targets:
      - uri: localhost:2222
        facts:
          provisioner: docker
          platform: centos:7
      - uri: localhost:2223
        facts:
          provisioner: docker
          platform: ubuntu:18.04
  - name: ssh_nodes
    targets:
      - uri: static.example.com
"""


def provisioned(node_name: str) -> list[TaskResult]:
    return [
        TaskResult(
            target="localhost", status="success", value={"node_name": node_name}
        )
    ]


def failed(message: str) -> list[TaskResult]:
    return [
        TaskResult(
            target="localhost",
            status="failure",
            value={"_error": {"msg": message}},
        )
    ]


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a module directory with the provision task module in fixtures."""
    (tmp_path / "spec" / "fixtures" / "modules" / "provision").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def task_runner_mock() -> Mock:
    """Create mock task runner."""
    return Mock(spec=BoltTaskRunner)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def commands(
    project_dir: Path, task_runner_mock: Mock, output: io.StringIO
) -> ProvisioningCommands:
    """Create provisioning commands with a mock task runner."""
    return ProvisioningCommands(
        config=RunnerConfig(project_dir=project_dir, prep_command=None),
        task_runner=task_runner_mock,
        console=Console(highlight=False, file=output, width=200),
    )


class TestPrepareFixtures:
    """Tests for prepare_fixtures function."""

    async def test_runs_prep_command(self, project_dir: Path) -> None:
        """Runs the preparation command from the project directory."""
        config = RunnerConfig(project_dir=project_dir, prep_command="touch prepared")

        await prepare_fixtures(config, "provision")

        assert (project_dir / "prepared").exists()

    async def test_raises_for_missing_module(self, tmp_path: Path) -> None:
        """Raises when the required module is not in the fixtures."""
        config = RunnerConfig(project_dir=tmp_path, prep_command=None)

        with pytest.raises(MissingModuleError, match="puppet_agent module was not found"):
            await prepare_fixtures(config, "puppet_agent")

    async def test_raises_when_prep_fails(self, project_dir: Path) -> None:
        """A failing preparation command stops the run."""
        config = RunnerConfig(project_dir=project_dir, prep_command="exit 1")

        with pytest.raises(RuntimeError, match="Attempted to run"):
            await prepare_fixtures(config, "provision")


class TestProvision:
    """Tests for provision."""

    async def test_runs_provision_task(
        self,
        commands: ProvisioningCommands,
        task_runner_mock: Mock,
        project_dir: Path,
        output: io.StringIO,
    ) -> None:
        """Runs the provisioner's task on localhost and prints the node."""
        task_runner_mock.run_task.return_value = provisioned("localhost:2222")

        results = await commands.provision("docker", "centos:7")

        assert results[0].succeeded
        task_runner_mock.run_task.assert_called_once_with(
            "provision::docker",
            "localhost",
            {
                "action": "provision",
                "platform": "centos:7",
                "inventory": str(project_dir),
            },
        )
        assert "localhost:2222, centos:7" in output.getvalue()

    async def test_prints_failures(
        self,
        commands: ProvisioningCommands,
        task_runner_mock: Mock,
        output: io.StringIO,
    ) -> None:
        """Failed results are printed with their details."""
        task_runner_mock.run_task.return_value = failed("no such image")

        results = await commands.provision("docker", "centos:99")

        assert not results[0].succeeded
        assert "Failed localhost" in output.getvalue()
        assert "no such image" in output.getvalue()

    async def test_rejects_unknown_provisioner(
        self, commands: ProvisioningCommands, task_runner_mock: Mock
    ) -> None:
        """Unknown provisioners are rejected before anything runs."""
        with pytest.raises(UnknownProvisionerError, match="Unknown provisioner 'lxd'"):
            await commands.provision("lxd", "centos:7")

        task_runner_mock.run_task.assert_not_called()


class TestProvisionList:
    """Tests for provision_list."""

    async def test_provisions_every_image_and_reports_failures(
        self,
        commands: ProvisioningCommands,
        task_runner_mock: Mock,
        project_dir: Path,
    ) -> None:
        """Attempts every image, then raises listing the failed ones."""
        (project_dir / "provision.yaml").write_text(
            "default:\n  provisioner: docker\n"
            "  images: ['centos:7', 'broken:1', 'ubuntu:18.04']\n"
        )
        task_runner_mock.run_task.side_effect = [
            provisioned("localhost:2222"),
            failed("pull access denied"),
            TaskRunnerError("bolt crashed"),
        ]

        with pytest.raises(ProvisionError) as exc_info:
            await commands.provision_list("default")

        message = str(exc_info.value)
        assert "Failed to provision with 'docker'" in message
        assert "broken:1" in message
        assert "ubuntu:18.04" in message
        assert "centos:7" not in message
        assert task_runner_mock.run_task.call_count == 3

    async def test_succeeds_when_all_images_provision(
        self,
        commands: ProvisioningCommands,
        task_runner_mock: Mock,
        project_dir: Path,
    ) -> None:
        """Returns normally when every image is provisioned."""
        (project_dir / "provision.yaml").write_text(
            "vagrant:\n  provisioner: vagrant\n  images: ['centos/7']\n"
        )
        task_runner_mock.run_task.return_value = provisioned("127.0.0.1:2200")

        await commands.provision_list("vagrant")

        assert task_runner_mock.run_task.call_args.args[0] == "provision::vagrant"

    async def test_raises_for_unknown_key(
        self, commands: ProvisioningCommands, project_dir: Path
    ) -> None:
        """An unknown list key is a configuration error."""
        (project_dir / "provision.yaml").write_text(
            "default:\n  provisioner: docker\n  images: []\n"
        )

        with pytest.raises(ValueError, match="No 'release' entry"):
            await commands.provision_list("release")


async def test_provision_from_metadata(
    commands: ProvisioningCommands,
    task_runner_mock: Mock,
    project_dir: Path,
    output: io.StringIO,
) -> None:
    """Provisions one target per supported platform."""
    (project_dir / "metadata.json").write_text(
        json.dumps(
            {
                "operatingsystem_support": [
                    {"operatingsystem": "CentOS", "operatingsystemrelease": ["7"]},
                    {"operatingsystem": "Ubuntu", "operatingsystemrelease": ["18.04"]},
                ]
            }
        )
    )
    task_runner_mock.run_task.return_value = provisioned("vm1")

    results = await commands.provision_from_metadata("vmpooler")

    assert len(results) == 2
    platforms = [
        c.args[2]["platform"] for c in task_runner_mock.run_task.call_args_list
    ]
    assert platforms == ["centos-7-x86_64", "ubuntu-1804-x86_64"]
    assert "centos-7-x86_64" in output.getvalue()


class TestTearDown:
    """Tests for tear_down."""

    async def test_tears_down_provisioned_targets_only(
        self,
        commands: ProvisioningCommands,
        task_runner_mock: Mock,
        project_dir: Path,
        output: io.StringIO,
    ) -> None:
        """Targets without a known provisioner fact are left alone."""
        (project_dir / "inventory.yaml").write_text(INVENTORY)
        task_runner_mock.run_task.side_effect = [
            provisioned("localhost:2222"),
            failed("container not found"),
        ]

        bad_results = await commands.tear_down()

        assert bad_results == ["localhost:2223, container not found"]
        node_names = [
            c.args[2]["node_name"] for c in task_runner_mock.run_task.call_args_list
        ]
        assert node_names == ["localhost:2222", "localhost:2223"]
        assert task_runner_mock.run_task.call_args.args[2]["action"] == "tear_down"
        text = output.getvalue()
        assert "localhost:2222, " in text
        assert "something went wrong:" in text

    async def test_tears_down_single_target(
        self,
        commands: ProvisioningCommands,
        task_runner_mock: Mock,
        project_dir: Path,
        output: io.StringIO,
    ) -> None:
        """Only the named target is torn down."""
        (project_dir / "inventory.yaml").write_text(INVENTORY)
        task_runner_mock.run_task.return_value = provisioned("localhost:2223")

        bad_results = await commands.tear_down("localhost:2223")

        assert bad_results == []
        task_runner_mock.run_task.assert_called_once()
        assert "something went wrong" not in output.getvalue()
