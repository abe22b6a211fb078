"""
The cleanup pipeline.

Six stages run strictly in order, each consuming only the previous stages'
return values:

    discover active images -> enumerate registry images -> find orphans
    -> filter by age -> delete (or simulate) -> aggregate report

Any stage failure aborts the run and no partial report is produced.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ecr_cleaner.config_manager import CleanerConfig
from ecr_cleaner.deletion import delete_images
from ecr_cleaner.image_filters import filter_images_by_age, find_orphaned_images
from ecr_cleaner.kubernetes_client import KubernetesClusterClient
from ecr_cleaner.logging_utils import get_logger
from ecr_cleaner.registry_client import EcrRegistryClient
from ecr_cleaner.registry_images import enumerate_registry_images
from ecr_cleaner.report_utils import build_report
from ecr_cleaner.workload_discovery import discover_active_images

Report = Dict[str, Dict[str, Any]]


class EcrCleaner:
    """Runs one cleanup pass against a cluster and an ECR registry"""

    def __init__(
        self,
        config: CleanerConfig,
        cluster: Optional[Any] = None,
        registry: Optional[Any] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            config: Immutable run configuration
            cluster: Cluster collaborator (defaults to KubernetesClusterClient)
            registry: Registry collaborator (defaults to EcrRegistryClient for config.region)
            clock: Returns the reference time for age calculations (defaults to UTC now)
        """
        self.config = config
        self.cluster = cluster if cluster is not None else KubernetesClusterClient()
        self.registry = registry if registry is not None else EcrRegistryClient(
            config.region, max_pool_connections=config.max_workers * 2
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger(self.__class__.__name__)

    def run(self) -> Optional[Report]:
        """Execute the pipeline and return the deletion report.

        Returns:
            repository name -> {failures, imagesDeleted, count}, or None when
            there is nothing to delete

        Raises:
            CleanupError: On any fatal stage failure
        """
        config = self.config
        mode = "COMMIT" if config.commit else "DRY RUN"
        self.logger.info(
            f"Starting cleanup ({mode}): retention {config.days} days, "
            f"excluded namespaces {list(config.exclude_namespaces)}"
        )

        active_images = discover_active_images(self.cluster, config)
        if not active_images:
            self.logger.info("No active images; nothing to delete")
            return None

        registry_images = enumerate_registry_images(
            self.registry, sorted(active_images), max_workers=config.max_workers
        )

        orphans = find_orphaned_images(active_images, registry_images)
        if not orphans:
            self.logger.info("No orphaned images; nothing to delete")
            return None
        self.logger.info(
            f"Found {sum(len(v) for v in orphans.values())} orphaned image(s) in {len(orphans)} repository(ies)"
        )

        expired = filter_images_by_age(
            self.registry,
            orphans,
            config.days,
            max_workers=config.max_workers,
            now=self.clock(),
            protected_tags=config.protected_tags,
        )
        if not expired:
            self.logger.info(f"No orphaned images older than {config.days} days; nothing to delete")
            return None

        results = delete_images(self.registry, expired, commit=config.commit, max_workers=config.max_workers)
        report = build_report(results)
        self.logger.info(f"Cleanup finished ({mode}): {sum(r.count for r in results.values())} image(s)")
        return report


def clean_registry(
    cluster: Optional[Any] = None,
    registry: Optional[Any] = None,
    clock: Optional[Callable[[], datetime]] = None,
    **options: Any,
) -> Optional[Report]:
    """Programmatic entry point.

    Configuration comes only from keyword arguments (any CleanerConfig field)
    over built-in defaults; no config file, environment or argv is read.
    Unlike the CLI, ``commit`` defaults to True.

    Raises:
        ConfigValidationError: If the options are invalid
        CleanupError: On any fatal stage failure
    """
    options.setdefault("commit", True)
    config = CleanerConfig().with_overrides(**options).validated()
    return EcrCleaner(config, cluster=cluster, registry=registry, clock=clock).run()
