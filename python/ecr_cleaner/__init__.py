"""
Delete stale ECR image tags that no running workload references.

The pipeline can be driven from the ``ecr-cleaner`` command or from code:

    from ecr_cleaner import clean_registry
    report = clean_registry(days=30, exclude_namespaces=["kube-system"])
"""

from ecr_cleaner.config_manager import CleanerConfig, ConfigManager, ConfigValidationError
from ecr_cleaner.error_utils import (
    CleanupError,
    DeletionError,
    DescribeError,
    DiscoveryError,
    EnumerationError,
)
from ecr_cleaner.image_reference import ImageReference
from ecr_cleaner.pipeline import EcrCleaner, clean_registry

__version__ = "1.0.0"

__all__ = [
    "CleanerConfig",
    "CleanupError",
    "ConfigManager",
    "ConfigValidationError",
    "DeletionError",
    "DescribeError",
    "DiscoveryError",
    "EcrCleaner",
    "EnumerationError",
    "ImageReference",
    "clean_registry",
]
