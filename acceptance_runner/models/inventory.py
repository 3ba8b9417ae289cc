"""Models for the Bolt inventory file (inventory.yaml)."""

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from pydantic import AliasChoices, Field, model_validator

from acceptance_runner.models.base import Model
from acceptance_runner.models.result import TargetDescriptor


class InventoryTarget(Model):
    """A single target entry.

    Version 2 inventories identify targets by ``uri`` (or ``name``), version 1
    by ``name``. Bare strings are accepted as a ``uri``.
    """

    name: str = Field(..., validation_alias=AliasChoices("uri", "name"))
    facts: Mapping[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"uri": data}
        return data


class InventoryGroup(Model):
    """A named group of targets, possibly nested."""

    name: str
    targets: Sequence[InventoryTarget] = Field(
        default_factory=list, validation_alias=AliasChoices("targets", "nodes")
    )
    groups: Sequence["InventoryGroup"] = Field(default_factory=list)
    facts: Mapping[str, Any] = Field(default_factory=dict)


class Inventory(Model):
    """Complete inventory loaded from inventory.yaml."""

    version: int = 2
    targets: Sequence[InventoryTarget] = Field(
        default_factory=list, validation_alias=AliasChoices("targets", "nodes")
    )
    groups: Sequence[InventoryGroup] = Field(default_factory=list)
    facts: Mapping[str, Any] = Field(default_factory=dict)

    def iter_targets(self) -> Iterator[tuple[str, Mapping[str, Any]]]:
        """Yield ``(name, facts)`` for every target entry in file order.

        Facts are merged from the enclosing groups, innermost winning.
        """
        yield from _walk(self.targets, self.groups, dict(self.facts))

    def find_targets(self, target: str | None = None) -> Sequence[str]:
        """Return every target name, or just ``target`` when one is given."""
        if target is not None:
            return [target]
        return [name for name, _ in self.iter_targets()]

    def facts_for(self, target: str) -> Mapping[str, Any]:
        """Return the facts of the first entry named ``target``, or ``{}``."""
        for name, facts in self.iter_targets():
            if name == target:
                return facts
        return {}

    def has_group(self, name: str) -> bool:
        """Check whether a group with this name exists at any depth."""
        pending = list(self.groups)
        while pending:
            group = pending.pop()
            if group.name == name:
                return True
            pending.extend(group.groups)
        return False

    def descriptors(self, target: str | None = None) -> Sequence[TargetDescriptor]:
        """Build a descriptor per target, labelled with its platform fact."""
        return [
            TargetDescriptor(
                target=name,
                label=str(self.facts_for(name).get("platform") or ""),
            )
            for name in self.find_targets(target)
        ]


def _walk(
    targets: Sequence[InventoryTarget],
    groups: Sequence[InventoryGroup],
    facts: dict[str, Any],
) -> Iterator[tuple[str, Mapping[str, Any]]]:
    for entry in targets:
        yield entry.name, {**facts, **entry.facts}
    for group in groups:
        yield from _walk(group.targets, group.groups, {**facts, **group.facts})
