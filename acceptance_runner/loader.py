"""Loading of inventory, metadata and provision list files."""

import asyncio
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from acceptance_runner.models.inventory import Inventory
from acceptance_runner.models.metadata import ModuleMetadata
from acceptance_runner.models.provision import ProvisionSpec


class InventoryError(ValueError):
    """Raised when the inventory file cannot be read or understood."""


async def load_inventory(path: Path) -> Inventory:
    """Load and validate a Bolt inventory file.

    Raises:
        InventoryError: If the file is missing, malformed or fails validation

    """
    try:
        data = await _read_yaml(path, "Inventory file")
        return Inventory.model_validate(data)
    except FileNotFoundError as e:
        raise InventoryError(str(e)) from e
    except ValidationError as e:
        raise InventoryError(f"Invalid inventory schema in {path}: {e}") from e
    except ValueError as e:
        raise InventoryError(str(e)) from e


async def load_metadata(path: Path) -> ModuleMetadata:
    """Load module metadata from metadata.json."""
    if not path.is_file():
        raise FileNotFoundError(f"Metadata file not found: {path}")

    text = await asyncio.to_thread(path.read_text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e

    try:
        return ModuleMetadata.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid metadata schema in {path}: {e}") from e


async def load_provision_list(path: Path) -> Mapping[str, ProvisionSpec]:
    """Load provision.yaml, a mapping of list key to provisioner and images."""
    data = await _read_yaml(path, "Provision file")
    try:
        return TypeAdapter(dict[str, ProvisionSpec]).validate_python(data)
    except ValidationError as e:
        raise ValueError(f"Invalid provision list schema in {path}: {e}") from e


async def _read_yaml(path: Path, kind: str) -> Any:
    if not path.is_file():
        raise FileNotFoundError(f"{kind} not found: {path}")

    text = await asyncio.to_thread(path.read_text)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty file: {path}")
    return data
