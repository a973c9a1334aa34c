"""Version gate: minimum supported app versions and chunk policy selection."""

from __future__ import annotations

from typing import Mapping

from ..config import DEFAULT_MIN_VERSIONS
from ..errors import UnsupportedVersionError
from ..models.version import VersionInfo
from .chunking import ChunkPolicy

POLICY_BY_MAJOR: dict[int, ChunkPolicy] = {
    1: ChunkPolicy.V1,
    2: ChunkPolicy.V2,
}


def check_version(
    reported: VersionInfo,
    min_versions: Mapping[int, tuple[int, int, int]] = DEFAULT_MIN_VERSIONS,
) -> None:
    """Raise unless ``reported`` meets the floor for its major revision.

    Raises:
        UnsupportedVersionError: If the major version has no entry in
            ``min_versions`` or the reported version is below the minimum.
    """
    required = min_versions.get(reported.major)
    if required is None:
        raise UnsupportedVersionError(f"App version {reported.major} is not supported")
    if reported.semver < tuple(required):
        raise UnsupportedVersionError(
            "App version {}.{}.{} is not supported, {}.{}.{} or newer is required".format(
                *reported.semver, *required
            )
        )


def policy_for(version: VersionInfo | None) -> ChunkPolicy:
    """Chunking policy for the negotiated version.

    Raises:
        UnsupportedVersionError: If no version has been read yet or the
            major revision is unknown.
    """
    if version is None:
        raise UnsupportedVersionError("App version has not been negotiated yet")
    try:
        return POLICY_BY_MAJOR[version.major]
    except KeyError:
        raise UnsupportedVersionError(
            f"App version {version.major} is not supported"
        ) from None
