"""Payload models stored by the stage cache."""

from .project import ProjectData

__all__ = ["ProjectData"]
