"""Models for module metadata (metadata.json)."""

import re
from collections.abc import Iterator, Sequence

from pydantic import Field

from acceptance_runner.models.base import Model

UNSUPPORTED_OPERATING_SYSTEMS = frozenset(["Amazon", "Archlinux", "AIX", "OSX"])

OPERATING_SYSTEM_ALIASES = {
    "OracleLinux": "oracle",
    "Windows": "win",
}


class OperatingSystemSupport(Model):
    """One ``operatingsystem_support`` entry."""

    operatingsystem: str | None = None
    operatingsystemrelease: Sequence[str] | None = None


class ModuleMetadata(Model):
    """The subset of metadata.json used to derive test platforms."""

    name: str | None = None
    version: str | None = None
    operatingsystem_support: Sequence[OperatingSystemSupport] = Field(
        default_factory=list
    )

    def platforms(self) -> Iterator[str]:
        """Yield a provisionable platform name per supported OS release.

        Names look like ``ubuntu-1804-x86_64`` or ``win-2016-x86_64``.
        Operating systems no provisioner can build are skipped.
        """
        for support in self.operatingsystem_support:
            if not support.operatingsystem or not support.operatingsystemrelease:
                continue
            if support.operatingsystem in UNSUPPORTED_OPERATING_SYSTEMS:
                continue

            os_name = OPERATING_SYSTEM_ALIASES.get(
                support.operatingsystem, support.operatingsystem.lower()
            )
            for release in support.operatingsystemrelease:
                version = normalize_release(os_name, release)
                yield f"{os_name}-{version.lower()}-x86_64".replace(" ", "")


def normalize_release(os_name: str, release: str) -> str:
    """Rewrite a release string into the form provisioners expect."""
    match os_name:
        case "ubuntu" | "osx":
            return release.replace(".", "", 1)
        case "sles":
            return re.sub(r" SP[14]", "", release)
        case "win":
            if "8.1" in release:
                release = release.replace(".", "")
            return release.replace("Server", "", 1).replace("10", "10-pro", 1)
        case _:
            return release
