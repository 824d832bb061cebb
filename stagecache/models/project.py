"""Data models for cached project records."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ProjectData:
    """Project resolution result for one source file.

    Attributes:
        project: Resolved project reference (name, source, config path...),
            or None if the file belongs to no project
        enhanced_metadata: Metadata merged from project config and frontmatter
    """

    project: Optional[Dict[str, Any]] = None
    enhanced_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "tgProject": self.project,
            "enhancedMetadata": self.enhanced_metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectData":
        """Create from dictionary.

        Raises:
            TypeError: If the data is not a mapping of the expected shape
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected project data object, got {type(data).__name__}")
        metadata = data.get("enhancedMetadata", {})
        project = data.get("tgProject")
        if not isinstance(metadata, dict) or not (project is None or isinstance(project, dict)):
            raise TypeError("Project data has unexpected field types")
        return cls(project=project, enhanced_metadata=metadata)
