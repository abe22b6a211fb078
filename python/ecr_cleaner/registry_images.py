"""
Registry image enumeration.

Lists every image identifier stored in each repository, following ECR
pagination until the last page. Repositories are enumerated concurrently;
pages within one repository are fetched in sequence.
"""

from functools import partial
from typing import Any, Dict, Iterable, List

from ecr_cleaner.concurrency import map_concurrently
from ecr_cleaner.error_utils import EnumerationError, create_registry_error
from ecr_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


def list_repository_images(registry, repository_name: str) -> List[Dict[str, Any]]:
    """Return all image identifiers of one repository, across all pages

    Raises:
        EnumerationError: If any page cannot be fetched
    """
    records: List[Dict[str, Any]] = []
    next_token = None
    pages = 0
    while True:
        try:
            page = registry.list_images(repository_name, next_token)
        except Exception as e:
            raise create_registry_error(EnumerationError, "ListImages", repository_name, e) from e

        pages += 1
        records.extend(page.get("imageIds") or [])
        next_token = page.get("nextToken")
        if not next_token:
            break

    logger.debug(f"Listed {len(records)} image(s) in {repository_name} ({pages} page(s))")
    return records


def enumerate_registry_images(
    registry, repository_names: Iterable[str], max_workers: int = 4
) -> Dict[str, List[Dict[str, Any]]]:
    """Return repository name -> list of registry image records

    Raises:
        EnumerationError: If any repository listing fails (fatal for the run)
    """
    repository_names = list(repository_names)
    logger.info(f"Listing registry images for {len(repository_names)} repository(ies)")
    return map_concurrently(partial(list_repository_images, registry), repository_names, max_workers=max_workers)
