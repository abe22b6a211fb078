"""Unit tests for ecr_cleaner/registry_client.py"""

from unittest.mock import MagicMock

import pytest

from ecr_cleaner.registry_client import BatchDeleteInterrupted, EcrRegistryClient, chunks, get_ecr_client


class TestChunks:
    """Tests for the chunks helper"""

    def test_splits_into_fixed_size_slices(self):
        assert list(chunks(list(range(5)), 2)) == [[0, 1], [2, 3], [4]]

    def test_empty_input(self):
        assert list(chunks([], 100)) == []


class TestGetEcrClient:
    """Tests for boto3 client construction"""

    def test_pool_size_is_at_least_default(self, mocker):
        mock_client = mocker.patch("ecr_cleaner.registry_client.boto3.client")

        get_ecr_client("eu-west-1", max_pool_connections=4)

        args, kwargs = mock_client.call_args
        assert args == ("ecr",)
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["config"].max_pool_connections == 10

    def test_client_is_created_lazily(self, mocker):
        mock_factory = mocker.patch("ecr_cleaner.registry_client.get_ecr_client")

        registry = EcrRegistryClient("us-east-1", max_pool_connections=32)
        mock_factory.assert_not_called()

        registry.client
        mock_factory.assert_called_once_with("us-east-1", 32)


class TestEcrRegistryClient:
    """Tests for the ECR wrapper calls"""

    def test_list_images_passes_next_token(self):
        ecr = MagicMock()
        ecr.list_images.return_value = {"imageIds": [{"imageTag": "v1"}], "nextToken": "abc"}

        page = EcrRegistryClient("us-east-1", ecr_client=ecr).list_images("app/web", "prev")

        ecr.list_images.assert_called_once_with(repositoryName="app/web", nextToken="prev")
        assert page == {"imageIds": [{"imageTag": "v1"}], "nextToken": "abc"}

    def test_list_images_last_page_has_no_token(self):
        ecr = MagicMock()
        ecr.list_images.return_value = {"imageIds": []}

        page = EcrRegistryClient("us-east-1", ecr_client=ecr).list_images("app/web")

        ecr.list_images.assert_called_once_with(repositoryName="app/web")
        assert page == {"imageIds": []}

    def test_describe_images_returns_details(self):
        ecr = MagicMock()
        ecr.describe_images.return_value = {"imageDetails": [{"imageDigest": "sha256:a"}]}

        details = EcrRegistryClient("us-east-1", ecr_client=ecr).describe_images(
            "app/web", [{"imageTag": "v1"}]
        )

        assert details == [{"imageDigest": "sha256:a"}]

    def test_describe_images_rejects_more_than_100_ids(self):
        registry = EcrRegistryClient("us-east-1", ecr_client=MagicMock())

        with pytest.raises(ValueError):
            registry.describe_images("app/web", [{"imageTag": str(i)} for i in range(101)])

    def test_batch_delete_is_chunked_and_merged(self):
        ecr = MagicMock()
        ecr.batch_delete_image.side_effect = lambda repositoryName, imageIds: {
            "imageIds": imageIds[:-1],
            "failures": [{"imageId": imageIds[-1], "failureCode": "ImageNotFound"}],
        }

        result = EcrRegistryClient("us-east-1", ecr_client=ecr).batch_delete_images(
            "app/web", [f"v{i}" for i in range(150)]
        )

        assert [len(c.kwargs["imageIds"]) for c in ecr.batch_delete_image.call_args_list] == [100, 50]
        assert len(result["imageIds"]) == 148
        assert len(result["failures"]) == 2

    def test_failed_chunk_carries_deleted_and_unconfirmed_tags(self):
        ecr = MagicMock()
        ecr.batch_delete_image.side_effect = [
            {"imageIds": [{"imageTag": f"v{i}"} for i in range(100)], "failures": []},
            Exception("ThrottlingException"),
        ]

        with pytest.raises(BatchDeleteInterrupted) as exc_info:
            EcrRegistryClient("us-east-1", ecr_client=ecr).batch_delete_images(
                "app/web", [f"v{i}" for i in range(150)]
            )

        assert ecr.batch_delete_image.call_count == 2
        assert len(exc_info.value.deleted) == 100
        assert exc_info.value.unconfirmed_tags == [f"v{i}" for i in range(100, 150)]
        assert str(exc_info.value.error) == "ThrottlingException"
