"""
Workload image discovery.

Lists the cluster's namespaces, drops the excluded ones, then collects the
images referenced by the pods of every remaining namespace (one concurrent
query per namespace) into an index of repository name -> in-use tags and digests.
"""

from functools import partial
from typing import Dict, Iterable, List, Mapping, Set

from ecr_cleaner.concurrency import map_concurrently
from ecr_cleaner.config_manager import CleanerConfig
from ecr_cleaner.error_utils import create_kubernetes_error
from ecr_cleaner.image_reference import ImageReference
from ecr_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


def list_active_namespaces(cluster, exclude_namespaces: Iterable[str]) -> List[str]:
    """Return cluster namespaces in API order, minus the excluded ones

    Raises:
        DiscoveryError: If the namespaces cannot be listed
    """
    logger.debug("Fetching namespaces")
    try:
        namespaces = cluster.list_namespaces()
    except Exception as e:
        raise create_kubernetes_error("list namespaces", e) from e

    excluded = set(exclude_namespaces)
    matching = [ns for ns in namespaces if ns and ns not in excluded]
    logger.debug(f"Matching namespaces: {matching}")
    return matching


def _list_namespace_images(cluster, namespace: str) -> List[str]:
    logger.debug(f"Fetching pods for namespace: {namespace}")
    try:
        images = cluster.list_pod_images(namespace)
    except Exception as e:
        raise create_kubernetes_error(f"list pods in namespace {namespace}", e) from e
    logger.debug(f"Fetched {len(images)} container image(s) for namespace: {namespace}")
    return images


def select_images(images: Iterable[str], config: CleanerConfig) -> List[ImageReference]:
    """Parse image strings and keep those eligible for the active index"""
    include = set(config.repos)
    exclude = set(config.exclude_repos)

    selected = []
    for image in images:
        if not image or not image.strip():
            continue
        ref = ImageReference.parse(image)
        if config.registry_host and ref.repo_url != config.registry_host:
            continue
        if ref.repo_name in exclude:
            continue
        if include and ref.repo_name not in include:
            continue
        selected.append(ref)
    return selected


def build_active_image_index(
    images_by_namespace: Mapping[str, Iterable[str]], config: CleanerConfig
) -> Dict[str, Set[str]]:
    """Aggregate per-namespace image lists into repository name -> in-use tags and digests.

    Digest-pinned images contribute their digest so the registry image they
    run is never treated as an orphan. A repository referenced only by
    untagged images is still present in the index, with an empty set.
    """
    index: Dict[str, Set[str]] = {}
    for namespace, images in images_by_namespace.items():
        refs = select_images(images, config)
        logger.debug(f"Matching images in {namespace}: {[ref.to_dict() for ref in refs]}")
        for ref in refs:
            in_use = index.setdefault(ref.repo_name, set())
            if ref.image_tag is not None:
                in_use.add(ref.image_tag)
            if ref.image_digest is not None:
                in_use.add(ref.image_digest)
    return index


def discover_active_images(cluster, config: CleanerConfig) -> Dict[str, Set[str]]:
    """Return repository name -> tags and digests used by pods in non-excluded namespaces.

    An empty result means nothing is known to be in use, which the pipeline
    treats as "nothing to delete".

    Raises:
        DiscoveryError: If namespaces or any namespace's pods cannot be listed
    """
    namespaces = list_active_namespaces(cluster, config.exclude_namespaces)
    if not namespaces:
        logger.info("No namespaces matched; not fetching pods")
        return {}

    logger.info(f"Fetching pods in {len(namespaces)} namespace(s)")
    images_by_namespace = map_concurrently(
        partial(_list_namespace_images, cluster), namespaces, max_workers=config.max_workers
    )

    index = build_active_image_index(images_by_namespace, config)
    total_refs = sum(len(refs) for refs in index.values())
    logger.info(f"Found {total_refs} in-use tag(s) and digest(s) across {len(index)} repository(ies)")
    return index
