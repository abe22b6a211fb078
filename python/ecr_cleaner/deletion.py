"""
Batch deletion of expired image tags.

In dry-run mode nothing is sent to the registry; a result with the same shape
as a real deletion is synthesized instead, reporting every requested tag as
deleted with no failures.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from ecr_cleaner.concurrency import map_concurrently
from ecr_cleaner.error_utils import DeletionError, create_registry_error
from ecr_cleaner.logging_utils import get_logger
from ecr_cleaner.registry_client import BatchDeleteInterrupted

logger = get_logger(__name__)


@dataclass
class RepositoryDeletionResult:
    """Outcome of the deletion request for one repository"""

    images_deleted: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.images_deleted)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return {
            "failures": list(self.failures),
            "imagesDeleted": list(self.images_deleted),
            "count": self.count,
        }


def delete_repository_images(registry, repository_name: str, tags: List[str], commit: bool) -> RepositoryDeletionResult:
    """Delete (or, when commit is False, simulate deleting) tags from one repository

    Raises:
        DeletionError: If the registry rejects a deletion request outright. When
            earlier chunks already succeeded, the deleted and unconfirmed tags are
            listed in its details.
    """
    image_ids = [{"imageTag": tag} for tag in tags]

    if not commit:
        logger.info(f"DRY RUN: would delete {len(image_ids)} image(s) from {repository_name}")
        return RepositoryDeletionResult(images_deleted=image_ids, failures=[])

    logger.info(f"Deleting {len(image_ids)} image(s) from {repository_name}")
    try:
        response = registry.batch_delete_images(repository_name, list(tags))
    except BatchDeleteInterrupted as e:
        deleted_tags = [image_id.get("imageTag") for image_id in e.deleted]
        logger.warning(
            f"Deletion from {repository_name} stopped after {len(deleted_tags)} image(s) were deleted: "
            f"deleted {deleted_tags}, not confirmed {e.unconfirmed_tags}"
        )
        raise create_registry_error(
            DeletionError,
            "BatchDeleteImage",
            repository_name,
            e.error,
            extra_details={
                "deleted_tags": deleted_tags,
                "failures": e.failures,
                "unconfirmed_tags": e.unconfirmed_tags,
            },
        ) from e.error
    except Exception as e:
        raise create_registry_error(DeletionError, "BatchDeleteImage", repository_name, e) from e

    result = RepositoryDeletionResult(
        images_deleted=list(response.get("imageIds") or []),
        failures=list(response.get("failures") or []),
    )
    for failure in result.failures:
        image_id = failure.get("imageId", {})
        logger.warning(
            f"Could not delete {repository_name}:{image_id.get('imageTag') or image_id.get('imageDigest')}: "
            f"{failure.get('failureCode')} {failure.get('failureReason', '')}".rstrip()
        )
    logger.info(f"Deleted {result.count} image(s) from {repository_name} ({len(result.failures)} failure(s))")
    return result


def delete_images(
    registry, tags_by_repository: Mapping[str, List[str]], commit: bool = False, max_workers: int = 4
) -> Dict[str, RepositoryDeletionResult]:
    """Submit one deletion request per repository

    Repositories are processed concurrently, with at most one call in flight
    per repository. Per-item failures are returned in each result.

    Raises:
        DeletionError: If any repository's deletion request is rejected outright
    """
    return map_concurrently(
        lambda repository_name: delete_repository_images(
            registry, repository_name, tags_by_repository[repository_name], commit
        ),
        list(tags_by_repository),
        max_workers=max_workers,
    )
