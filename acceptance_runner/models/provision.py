"""Models for provision.yaml and Bolt task results."""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import AliasChoices, Field

from acceptance_runner.models.base import Model


class ProvisionSpec(Model):
    """A named list of images to provision with one provisioner."""

    provisioner: str
    images: Sequence[str] = Field(default_factory=list)


class TaskResult(Model):
    """Per-target result record returned by the task runner.

    Older Bolt releases emit ``node``/``result`` instead of ``target``/``value``.
    """

    target: str = Field(..., validation_alias=AliasChoices("target", "node"))
    status: str
    value: Mapping[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("value", "result")
    )

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def node_name(self) -> str:
        """Name of a provisioned node, falling back to the task target."""
        return str(self.value.get("node_name", self.target))

    @property
    def error_message(self) -> str:
        error = self.value.get("_error")
        if isinstance(error, Mapping) and "msg" in error:
            return str(error["msg"])
        return str(dict(self.value))
