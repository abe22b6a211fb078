"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory,
and provides fake cluster/registry collaborators shared by the pipeline tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def days_ago(days):
    return NOW - timedelta(days=days)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_cluster():
    """Cluster with namespaces default and kube-system"""
    cluster = MagicMock()
    cluster.list_namespaces.return_value = ["default", "kube-system"]
    pods = {
        "default": ["123.dkr.ecr.us-east-1.amazonaws.com/app/web:v2"],
        "kube-system": ["123.dkr.ecr.us-east-1.amazonaws.com/kube/proxy:v1.29"],
    }
    cluster.list_pod_images.side_effect = lambda ns: list(pods[ns])
    return cluster


@pytest.fixture
def fake_registry():
    """Registry holding app/web tags v1 (200d), v2 (10d) and latest (400d)"""
    registry = MagicMock()
    registry.list_images.return_value = {
        "imageIds": [
            {"imageTag": "v1", "imageDigest": "sha256:aaa"},
            {"imageTag": "v2", "imageDigest": "sha256:bbb"},
            {"imageTag": "latest", "imageDigest": "sha256:ccc"},
        ]
    }
    details = {
        "sha256:aaa": {"imageDigest": "sha256:aaa", "imageTags": ["v1"], "imagePushedAt": days_ago(200)},
        "sha256:bbb": {"imageDigest": "sha256:bbb", "imageTags": ["v2"], "imagePushedAt": days_ago(10)},
        "sha256:ccc": {"imageDigest": "sha256:ccc", "imageTags": ["latest"], "imagePushedAt": days_ago(400)},
    }
    registry.describe_images.side_effect = lambda repo, ids: [details[i["imageDigest"]] for i in ids]
    registry.batch_delete_images.side_effect = lambda repo, tags: {
        "imageIds": [{"imageTag": t} for t in tags],
        "failures": [],
    }
    return registry
