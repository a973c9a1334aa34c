"""Data models for values read from the device."""

from .version import VersionInfo
