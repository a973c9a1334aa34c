"""App version record returned by GET_VERSION."""

from __future__ import annotations

from dataclasses import dataclass

APP_MODE_DEBUG = 0xFF


@dataclass(frozen=True)
class VersionInfo:
    """Version of the app running on the device.

    ``app_mode`` is 0xFF for debug builds and 0x00 for production.
    """

    app_mode: int
    major: int
    minor: int
    patch: int

    @property
    def debug(self) -> bool:
        return self.app_mode == APP_MODE_DEBUG

    @property
    def semver(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def to_dict(self) -> dict:
        return {
            "app_mode": self.app_mode,
            "debug": self.debug,
            "major": self.major,
            "minor": self.minor,
            "patch": self.patch,
        }

    @classmethod
    def from_bytes(cls, data: bytes) -> VersionInfo:
        return cls(app_mode=data[0], major=data[1], minor=data[2], patch=data[3])

    def __str__(self) -> str:
        suffix = " (debug)" if self.debug else ""
        return f"{self.major}.{self.minor}.{self.patch}{suffix}"
