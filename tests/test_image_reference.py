"""Unit tests for ecr_cleaner/image_reference.py"""

from ecr_cleaner.image_reference import ImageReference


class TestImageReferenceParse:
    """Tests for ImageReference.parse"""

    def test_parses_registry_repository_and_tag(self):
        ref = ImageReference.parse("123.dkr.ecr.us-east-1.amazonaws.com/team/app/web:v1.2")

        assert ref.repo_url == "123.dkr.ecr.us-east-1.amazonaws.com"
        assert ref.repo_name == "team/app/web"
        assert ref.image_name == "web"
        assert ref.image_tag == "v1.2"
        assert ref.image_digest is None

    def test_single_level_repository(self):
        ref = ImageReference.parse("registry.example.com/nginx:1.25")

        assert ref.repo_url == "registry.example.com"
        assert ref.repo_name == "nginx"
        assert ref.image_tag == "1.25"

    def test_missing_tag_is_none(self):
        ref = ImageReference.parse("registry.example.com/app/web")

        assert ref.repo_name == "app/web"
        assert ref.image_tag is None

    def test_digest_is_split_from_name(self):
        ref = ImageReference.parse("registry.example.com/app/web@sha256:abc123")

        assert ref.repo_name == "app/web"
        assert ref.image_tag is None
        assert ref.image_digest == "sha256:abc123"

    def test_tag_and_digest(self):
        ref = ImageReference.parse("registry.example.com/app/web:v1@sha256:abc123")

        assert ref.image_tag == "v1"
        assert ref.image_digest == "sha256:abc123"

    def test_image_without_registry_host(self):
        """A bare image name has no registry host but is still parsed"""
        ref = ImageReference.parse("nginx:latest")

        assert ref.repo_url is None
        assert ref.repo_name == "nginx"
        assert ref.image_tag == "latest"

    def test_registry_with_port(self):
        ref = ImageReference.parse("localhost:5000/app/web:v3")

        assert ref.repo_url == "localhost:5000"
        assert ref.repo_name == "app/web"
        assert ref.image_tag == "v3"

    def test_to_dict_uses_camel_case_keys(self):
        ref = ImageReference.parse("host/app/web:v1")

        assert ref.to_dict() == {
            "repoUrl": "host",
            "repoName": "app/web",
            "imageName": "web",
            "imageTag": "v1",
            "imageDigest": None,
        }
