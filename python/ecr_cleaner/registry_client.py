"""
Thin wrapper around the boto3 ECR client.

Only the three calls the cleanup pipeline needs are exposed. Errors raised by
boto3 are propagated unchanged, except that a failed deletion chunk is wrapped
in BatchDeleteInterrupted so the images already deleted are not lost. The
pipeline stages translate them into CleanupError subclasses.
"""

from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config

from ecr_cleaner.logging_utils import get_logger

logger = get_logger(__name__)

# ECR rejects DescribeImages and BatchDeleteImage requests naming more than 100 images
MAX_IMAGE_IDS_PER_REQUEST = 100


class BatchDeleteInterrupted(Exception):
    """A deletion chunk failed after zero or more earlier chunks were deleted"""

    def __init__(
        self,
        error: Exception,
        deleted: List[Dict[str, Any]],
        failures: List[Dict[str, Any]],
        unconfirmed_tags: List[str],
    ):
        self.error = error
        self.deleted = deleted
        self.failures = failures
        self.unconfirmed_tags = unconfirmed_tags
        super().__init__(str(error))


def get_ecr_client(region_name: str, max_pool_connections: int = 10):
    """Create an ECR client whose connection pool fits the worker count.

    boto3 clients default to a 10 connection pool; with more concurrent
    repositories urllib3 starts logging "Connection pool is full" warnings.
    """
    config = Config(max_pool_connections=max(10, max_pool_connections))
    return boto3.client("ecr", region_name=region_name, config=config)


def chunks(items: List[Any], chunk_size: int = MAX_IMAGE_IDS_PER_REQUEST):
    """Yield successive chunk_size-sized slices of items"""
    for i in range(0, len(items), chunk_size):
        yield items[i : i + chunk_size]


class EcrRegistryClient:
    """Registry collaborator backed by AWS ECR"""

    def __init__(self, region_name: str, ecr_client: Optional[Any] = None, max_pool_connections: int = 10):
        self.region_name = region_name
        self._client = ecr_client
        self._max_pool_connections = max_pool_connections

    @property
    def client(self):
        if self._client is None:
            self._client = get_ecr_client(self.region_name, self._max_pool_connections)
        return self._client

    def list_images(self, repository_name: str, next_token: Optional[str] = None) -> Dict[str, Any]:
        """Fetch a single page of image identifiers.

        Returns:
            Dict with ``imageIds`` and, when more pages exist, ``nextToken``
        """
        params = {"repositoryName": repository_name}
        if next_token:
            params["nextToken"] = next_token
        response = self.client.list_images(**params)
        page = {"imageIds": response.get("imageIds", [])}
        if response.get("nextToken"):
            page["nextToken"] = response["nextToken"]
        return page

    def describe_images(self, repository_name: str, image_ids: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        """Fetch full metadata (including imagePushedAt) for up to 100 images"""
        if len(image_ids) > MAX_IMAGE_IDS_PER_REQUEST:
            raise ValueError(
                f"describe_images accepts at most {MAX_IMAGE_IDS_PER_REQUEST} image ids, got {len(image_ids)}"
            )
        response = self.client.describe_images(repositoryName=repository_name, imageIds=image_ids)
        return response.get("imageDetails", [])

    def batch_delete_images(self, repository_name: str, tags: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        """Delete images by tag.

        Requests larger than the ECR limit are sent as sequential chunks and
        their results merged.

        Returns:
            Dict with ``imageIds`` (deleted) and ``failures`` (per-item failures)

        Raises:
            BatchDeleteInterrupted: If a chunk fails; carries what earlier chunks
                deleted and the tags of the failed and unsent chunks
        """
        deleted: List[Dict[str, Any]] = []
        failures: List[Dict[str, Any]] = []
        image_ids = [{"imageTag": tag} for tag in tags]
        for i, chunk in enumerate(chunks(image_ids), 1):
            logger.debug(f"Deleting chunk #{i} of {len(chunk)} images from {repository_name}")
            try:
                response = self.client.batch_delete_image(repositoryName=repository_name, imageIds=chunk)
            except Exception as e:
                sent = (i - 1) * MAX_IMAGE_IDS_PER_REQUEST
                unconfirmed_tags = [image_id["imageTag"] for image_id in image_ids[sent:]]
                raise BatchDeleteInterrupted(e, deleted, failures, unconfirmed_tags) from e
            deleted.extend(response.get("imageIds", []))
            failures.extend(response.get("failures", []))
        return {"imageIds": deleted, "failures": failures}
