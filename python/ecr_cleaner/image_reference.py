"""Parsing of fully-qualified container image strings found in pod specs."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ImageReference:
    """A container image reference split into registry, repository and tag"""

    repo_url: Optional[str]
    repo_name: str
    image_name: str
    image_tag: Optional[str] = None
    image_digest: Optional[str] = None

    @classmethod
    def parse(cls, image: str) -> "ImageReference":
        """Parse ``registry/path/name:tag``.

        The first segment is the registry host and the last one is
        ``name[:tag][@digest]``; everything in between is the repository path.
        A string without ``/`` has no registry host.
        """
        segments = image.strip().split("/")
        name_and_tag = segments.pop()
        repo_url = segments.pop(0) if segments else None

        image_digest = None
        if "@" in name_and_tag:
            name_and_tag, image_digest = name_and_tag.split("@", 1)

        image_name, _, tag = name_and_tag.partition(":")
        image_tag = tag if ":" in name_and_tag else None

        return cls(
            repo_url=repo_url,
            repo_name="/".join(segments + [image_name]),
            image_name=image_name,
            image_tag=image_tag,
            image_digest=image_digest,
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Convert to dictionary for JSON serialization"""
        return {
            "repoUrl": self.repo_url,
            "repoName": self.repo_name,
            "imageName": self.image_name,
            "imageTag": self.image_tag,
            "imageDigest": self.image_digest,
        }
