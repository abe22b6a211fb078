"""Unit tests for ecr_cleaner/deletion.py"""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from ecr_cleaner.deletion import RepositoryDeletionResult, delete_images, delete_repository_images
from ecr_cleaner.error_utils import DeletionError, ErrorCategory
from ecr_cleaner.registry_client import EcrRegistryClient


class TestDryRun:
    """Tests for simulated deletion"""

    def test_dry_run_synthesizes_result_without_registry_call(self):
        registry = MagicMock()

        results = delete_images(registry, {"app/web": ["v1"]}, commit=False)

        assert results["app/web"].to_dict() == {
            "failures": [],
            "imagesDeleted": [{"imageTag": "v1"}],
            "count": 1,
        }
        registry.batch_delete_images.assert_not_called()

    def test_dry_run_count_matches_requested_tags(self):
        result = delete_repository_images(MagicMock(), "app/web", ["v1", "v2", "v3"], commit=False)

        assert result.count == 3


class TestCommit:
    """Tests for real deletion"""

    def test_commit_deletes_by_tag(self, fake_registry):
        results = delete_images(fake_registry, {"app/web": ["v1"], "app/api": ["v9", "v10"]}, commit=True)

        fake_registry.batch_delete_images.assert_any_call("app/web", ["v1"])
        fake_registry.batch_delete_images.assert_any_call("app/api", ["v9", "v10"])
        assert results["app/api"].count == 2

    def test_per_item_failures_are_reported_not_raised(self):
        registry = MagicMock()
        registry.batch_delete_images.return_value = {
            "imageIds": [{"imageTag": "v1", "imageDigest": "sha256:aaa"}],
            "failures": [
                {
                    "imageId": {"imageTag": "v2"},
                    "failureCode": "ImageTagDoesNotMatchDigest",
                    "failureReason": "The specified image tag does not exist",
                }
            ],
        }

        result = delete_repository_images(registry, "app/web", ["v1", "v2"], commit=True)

        assert result.count == 1
        assert result.failures[0]["failureCode"] == "ImageTagDoesNotMatchDigest"

    def test_rejected_request_raises_deletion_error(self):
        registry = MagicMock()
        registry.batch_delete_images.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "not authorized"}}, "BatchDeleteImage"
        )

        with pytest.raises(DeletionError) as exc_info:
            delete_images(registry, {"app/web": ["v1"]}, commit=True)

        assert exc_info.value.category == ErrorCategory.PERMISSION
        assert exc_info.value.details["operation"] == "BatchDeleteImage"

    def test_interrupted_batch_lists_deleted_and_unconfirmed_tags(self):
        ecr = MagicMock()
        ecr.batch_delete_image.side_effect = [
            {"imageIds": [{"imageTag": f"v{i}"} for i in range(100)], "failures": []},
            Exception("ThrottlingException"),
        ]
        registry = EcrRegistryClient("us-east-1", ecr_client=ecr)
        tags = [f"v{i}" for i in range(150)]

        with pytest.raises(DeletionError) as exc_info:
            delete_repository_images(registry, "app/web", tags, commit=True)

        details = exc_info.value.details
        assert details["deleted_tags"] == tags[:100]
        assert details["unconfirmed_tags"] == tags[100:]
        assert details["error_message"] == "ThrottlingException"
        assert "deleted_tags" in str(exc_info.value)


class TestRepositoryDeletionResult:
    """Tests for the result value object"""

    def test_empty_result(self):
        assert RepositoryDeletionResult().to_dict() == {"failures": [], "imagesDeleted": [], "count": 0}
