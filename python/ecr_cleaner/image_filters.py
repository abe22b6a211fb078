"""
Orphan and age filtering of registry images.

find_orphaned_images() is a pure set difference between what the registry
stores and what the cluster runs. filter_images_by_age() then fetches push
timestamps for the orphans (in batches of at most 100, sequentially within a
repository, concurrently across repositories) and keeps the tags that are at
least ``days`` old. "latest" is never selected, whatever else is protected.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from ecr_cleaner.concurrency import map_concurrently
from ecr_cleaner.config_manager import PROTECTED_TAG
from ecr_cleaner.error_utils import DescribeError, create_registry_error
from ecr_cleaner.logging_utils import get_logger
from ecr_cleaner.registry_client import MAX_IMAGE_IDS_PER_REQUEST, chunks

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400.0


def find_orphaned_images(
    active_images: Mapping[str, Set[str]], registry_images: Mapping[str, List[Dict[str, Any]]]
) -> Dict[str, List[Dict[str, Any]]]:
    """Return repository name -> registry records that no workload references.

    ``active_images`` maps a repository to the tags and digests its pods use; a
    record is in use when either its tag or its digest is in that set. Tags
    cannot contain ":" so a digest never collides with a tag.

    Repositories without registry data are skipped. Inputs are not mutated;
    emitted records are copies. A record (tag, digest) is emitted at most once.
    """
    orphans: Dict[str, List[Dict[str, Any]]] = {}
    for repository_name, records in registry_images.items():
        if not records:
            continue
        in_use = active_images.get(repository_name) or set()

        seen = set()
        repository_orphans = []
        for record in records:
            tag = record.get("imageTag")
            digest = record.get("imageDigest")
            if tag in in_use or digest in in_use:
                continue
            key = (tag, digest)
            if key in seen:
                continue
            seen.add(key)
            repository_orphans.append(dict(record))

        if repository_orphans:
            orphans[repository_name] = repository_orphans

    return orphans


def parse_pushed_at(value: Any) -> Optional[datetime]:
    """Parse an imagePushedAt value into an aware datetime.

    boto3 returns aware datetimes; ISO strings (possibly ending with 'Z') and
    epoch seconds are accepted too. Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            pushed_at = value
        elif isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        elif isinstance(value, str):
            pushed_at = datetime.fromisoformat(value.replace("Z", "+00:00"))
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None
    if pushed_at.tzinfo is None:
        pushed_at = pushed_at.replace(tzinfo=timezone.utc)
    return pushed_at


def image_age_days(pushed_at: datetime, now: datetime) -> float:
    """Fractional days elapsed between pushed_at and now"""
    return (now - pushed_at).total_seconds() / SECONDS_PER_DAY


def _image_id(record: Dict[str, Any]) -> Dict[str, str]:
    return {key: record[key] for key in ("imageDigest", "imageTag") if record.get(key)}


def describe_orphaned_images(
    registry, repository_name: str, orphans: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Fetch imageDetails for the tagged orphans of one repository

    Raises:
        DescribeError: If any batch cannot be described
    """
    image_ids = [_image_id(record) for record in orphans if record.get("imageTag")]
    details: List[Dict[str, Any]] = []
    for batch in chunks(image_ids, MAX_IMAGE_IDS_PER_REQUEST):
        try:
            details.extend(registry.describe_images(repository_name, batch))
        except Exception as e:
            raise create_registry_error(DescribeError, "DescribeImages", repository_name, e) from e
    return details


def select_expired_tags(
    orphans: List[Dict[str, Any]],
    details: List[Dict[str, Any]],
    days: float,
    now: datetime,
    protected_tags: Iterable[str] = (PROTECTED_TAG,),
) -> List[str]:
    """Return orphan tags at least ``days`` old, in orphan order.

    Push timestamps are looked up by digest, falling back to the tags listed
    on each image detail. "latest" is protected in addition to protected_tags.
    """
    protected = {PROTECTED_TAG, *protected_tags}
    pushed_by_digest: Dict[str, Any] = {}
    pushed_by_tag: Dict[str, Any] = {}
    for detail in details:
        pushed_at = detail.get("imagePushedAt")
        if detail.get("imageDigest"):
            pushed_by_digest[detail["imageDigest"]] = pushed_at
        for tag in detail.get("imageTags") or []:
            pushed_by_tag[tag] = pushed_at

    expired: List[str] = []
    selected: Set[str] = set()
    for record in orphans:
        tag = record.get("imageTag")
        if not tag or tag in selected:
            continue
        if tag in protected:
            logger.debug(f"Keeping protected tag '{tag}'")
            continue

        raw = pushed_by_digest.get(record.get("imageDigest"))
        pushed_at = parse_pushed_at(raw if raw is not None else pushed_by_tag.get(tag))
        if pushed_at is None:
            logger.warning(f"No push timestamp for tag '{tag}'; keeping it")
            continue

        if image_age_days(pushed_at, now) >= days:
            selected.add(tag)
            expired.append(tag)

    return expired


def filter_images_by_age(
    registry,
    orphans: Mapping[str, List[Dict[str, Any]]],
    days: float,
    max_workers: int = 4,
    now: Optional[datetime] = None,
    protected_tags: Iterable[str] = (PROTECTED_TAG,),
) -> Dict[str, List[str]]:
    """Return repository name -> orphan tags old enough to delete

    Args:
        registry: Registry collaborator exposing describe_images()
        orphans: Output of find_orphaned_images()
        days: Retention threshold in (fractional) days, inclusive
        max_workers: Repositories described concurrently
        now: Reference time (defaults to the current UTC time)
        protected_tags: Tags that are never selected

    Raises:
        DescribeError: If any metadata batch cannot be fetched
    """
    now = now or datetime.now(timezone.utc)
    protected_tags = tuple(protected_tags)

    logger.info(f"Describing orphaned images in {len(orphans)} repository(ies)")
    details_by_repository = map_concurrently(
        lambda repository_name: describe_orphaned_images(registry, repository_name, orphans[repository_name]),
        list(orphans),
        max_workers=max_workers,
    )

    expired: Dict[str, List[str]] = {}
    for repository_name, details in details_by_repository.items():
        tags = select_expired_tags(orphans[repository_name], details, days, now, protected_tags)
        logger.debug(
            f"{repository_name}: {len(tags)} of {len(orphans[repository_name])} orphan(s) at least {days} days old"
        )
        if tags:
            expired[repository_name] = tags
    return expired
