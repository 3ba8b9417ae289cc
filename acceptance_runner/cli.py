"""CLI entry point for acceptance test orchestration."""

import argparse
import asyncio
import logging
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

from rich.console import Console

from acceptance_runner.acceptance import run_parallel, run_single
from acceptance_runner.config import RunnerConfig
from acceptance_runner.installation import InstallationCommands
from acceptance_runner.loader import InventoryError, load_metadata
from acceptance_runner.provisioning import ProvisioningCommands
from acceptance_runner.tasks import BoltTaskRunner

CONFIGURATION_ERROR_EXIT_CODE = 2


async def run(args: argparse.Namespace, config: RunnerConfig, console: Console) -> int:
    """Run the selected command and return an exit code."""
    log = logging.getLogger("acceptance_runner")

    task_runner = BoltTaskRunner(
        modulepath=config.fixtures_modulepath, cwd=config.project_dir
    )
    provisioning = ProvisioningCommands(
        config=config, task_runner=task_runner, console=console
    )
    installation = InstallationCommands(
        config=config, task_runner=task_runner, console=console
    )

    try:
        match args.command:
            case "metadata":
                metadata = await load_metadata(config.metadata_path)
                for platform in metadata.platforms():
                    console.out(platform)
                return 0
            case "provision":
                results = await provisioning.provision(args.provisioner, args.platform)
                return exit_code_for(r.target for r in results if not r.succeeded)
            case "provision-list":
                await provisioning.provision_list(args.key)
                return 0
            case "provision-from-metadata":
                results = await provisioning.provision_from_metadata(args.provisioner)
                return exit_code_for(r.target for r in results if not r.succeeded)
            case "install-agent":
                failed = await installation.install_agent(args.collection, args.target)
                return exit_code_for(failed)
            case "install-module":
                return exit_code_for(await installation.install_module(args.target))
            case "tear-down":
                return exit_code_for(await provisioning.tear_down(args.target))
            case "acceptance":
                return await run_parallel(config, console, quiet=args.quiet)
            case "acceptance-target":
                return await run_single(config, args.target)
            case _:
                raise ValueError(f"Unknown command: {args.command}")
    except (InventoryError, FileNotFoundError, ValueError) as e:
        log.error("Configuration error: %s", e)
        return CONFIGURATION_ERROR_EXIT_CODE
    except RuntimeError as e:
        log.error("%s", e)
        return 1


def exit_code_for(failures: Iterable[str]) -> int:
    """Return 1 when there is at least one failure, else 0."""
    return 1 if any(True for _ in failures) else 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(
        description="Provision targets and run acceptance tests against them"
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        help="Module directory containing metadata.json (default: current directory)",
    )
    parser.add_argument(
        "--inventory",
        type=Path,
        help="Inventory file (default: <project-dir>/inventory.yaml)",
    )
    parser.add_argument(
        "--modulepath",
        type=Path,
        help="Fixture modules directory (default: <project-dir>/spec/fixtures/modules)",
    )
    parser.add_argument(
        "--skip-prep",
        action="store_true",
        help="Do not run the fixture preparation command",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("metadata", help="Print all supported platforms from metadata")

    provision = commands.add_parser("provision", help="Provision a single target")
    provision.add_argument("provisioner", help="abs, docker, docker_exp, vagrant or vmpooler")
    provision.add_argument("platform", help="Platform, e.g. ubuntu-1804-x86_64")

    provision_list = commands.add_parser(
        "provision-list", help="Provision the images listed in provision.yaml"
    )
    provision_list.add_argument("key", nargs="?", default="default")

    from_metadata = commands.add_parser(
        "provision-from-metadata", help="Provision every platform from metadata"
    )
    from_metadata.add_argument("provisioner")

    install_agent = commands.add_parser("install-agent", help="Install the agent")
    install_agent.add_argument("--collection", help="Agent collection, e.g. puppet6")
    install_agent.add_argument("--target", help="Single target (default: all)")

    install_module = commands.add_parser(
        "install-module", help="Build the module and install it on targets"
    )
    install_module.add_argument("--target", help="Single target (default: all)")

    tear_down = commands.add_parser("tear-down", help="Decommission targets")
    tear_down.add_argument("--target", help="Single target (default: all)")

    acceptance = commands.add_parser(
        "acceptance", help="Run tests in parallel against all inventory targets"
    )
    _add_test_options(acceptance)
    acceptance.add_argument(
        "--concurrency", type=int, help="Maximum concurrent targets (default: CPUs)"
    )
    acceptance.add_argument(
        "--timeout", type=float, help="Per-target timeout in seconds (default: none)"
    )
    mode = acceptance.add_mutually_exclusive_group()
    mode.add_argument(
        "--quiet", dest="quiet", action="store_const", const=True, default=None,
        help="Single progress indicator (default under CI)",
    )
    mode.add_argument(
        "--interactive", dest="quiet", action="store_const", const=False,
        help="Per-target progress indicators (default outside CI)",
    )

    single = commands.add_parser(
        "acceptance-target", help="Run tests against one target, e.g. localhost"
    )
    single.add_argument("target")
    _add_test_options(single)

    return parser


def _add_test_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--test-command", help="Test suite command to run per target")


def config_from_args(args: argparse.Namespace) -> RunnerConfig:
    """Resolve configuration from the environment and parsed arguments."""
    return RunnerConfig.from_environ(
        project_dir=args.project_dir,
        inventory_file=args.inventory,
        modulepath=args.modulepath,
        prep_command="" if args.skip_prep else None,
        test_command=getattr(args, "test_command", None),
        concurrency=getattr(args, "concurrency", None),
        timeout=getattr(args, "timeout", None),
    )


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        logging.getLogger("acceptance_runner").error("Invalid options: %s", e)
        sys.exit(CONFIGURATION_ERROR_EXIT_CODE)

    exit_code = asyncio.run(run(args, config, Console(highlight=False)))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
