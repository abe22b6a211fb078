"""
Configuration Manager for the ECR cleaner

This module loads settings from config.yaml and environment variables and
turns them into an immutable CleanerConfig that is handed to the pipeline.
Precedence (highest first): explicit overrides (CLI flags / keyword
arguments) -> environment variables -> config file -> built-in defaults.

Values are coerced and validated once, after every source has been merged.
"""

import copy
import logging
import os
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from ecr_cleaner.error_utils import ActionableError, ErrorCategory

DEFAULT_EXCLUDED_NAMESPACES = ("kube-system",)
DEFAULT_RETENTION_DAYS = 90.0
DEFAULT_REGION = "us-east-1"
PROTECTED_TAG = "latest"

_TRUE_VALUES = ("true", "yes", "on", "1")
_FALSE_VALUES = ("false", "no", "off", "0")


class ConfigValidationError(ActionableError):
    """Raised when configuration validation fails"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(
            message="Configuration validation failed:\n  " + "\n  ".join(self.errors),
            category=ErrorCategory.CONFIGURATION,
            suggestions=[
                "Check the values in config.yaml or on the command line",
                "See config-example.yaml for the expected format",
            ],
        )


@dataclass(frozen=True)
class CleanerConfig:
    """Immutable settings for one cleanup run.

    Created once per invocation and passed explicitly to every stage.
    ``protected_tags`` adds to the built-in "latest" protection; it cannot
    remove it.
    """

    repos: Tuple[str, ...] = ()
    exclude_repos: Tuple[str, ...] = ()
    exclude_namespaces: Tuple[str, ...] = DEFAULT_EXCLUDED_NAMESPACES
    days: float = DEFAULT_RETENTION_DAYS
    commit: bool = False
    region: str = DEFAULT_REGION
    registry_host: Optional[str] = None
    max_workers: int = 4
    protected_tags: Tuple[str, ...] = field(default=(PROTECTED_TAG,))

    @property
    def dry_run(self) -> bool:
        return not self.commit

    def with_overrides(self, **overrides: Any) -> "CleanerConfig":
        """Return a validated copy with the given non-None fields replaced

        Raises:
            ConfigValidationError: Listing every unknown, malformed or invalid value
        """
        known = {f.name for f in fields(self)}
        errors = [f"Unknown configuration option: {name}" for name in sorted(set(overrides) - known)]

        changes = {}
        for name, value in overrides.items():
            if value is None or name not in known:
                continue
            try:
                changes[name] = _normalize_field(name, value)
            except (ValueError, TypeError) as e:
                errors.append(f"Invalid value for {name}: {e}")

        config = replace(self, **changes)
        errors.extend(config.validation_errors())
        if errors:
            raise ConfigValidationError(errors)
        return config

    def validation_errors(self) -> List[str]:
        return validate_values(
            days=self.days,
            max_workers=self.max_workers,
            region=self.region,
            exclude_namespaces=self.exclude_namespaces,
        )

    def validated(self) -> "CleanerConfig":
        """Return self, or raise ConfigValidationError listing every invalid field"""
        errors = self.validation_errors()
        if errors:
            raise ConfigValidationError(errors)
        return self


def _as_tuple(value: Any) -> Tuple[str, ...]:
    """Coerce a list, tuple, set or comma separated string into a tuple of strings"""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(v) for v in value)


def parse_bool(value: Any) -> bool:
    """Strictly parse a boolean; "false", "no", "off" and "0" are False"""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _normalize_field(name: str, value: Any) -> Any:
    if name in ("repos", "exclude_repos", "exclude_namespaces", "protected_tags"):
        return _as_tuple(value)
    if name == "days":
        return float(value)
    if name == "max_workers":
        return int(value)
    if name == "commit":
        return parse_bool(value)
    return value


class ConfigManager:
    """Manages configuration for the ECR cleaner

    Loading never validates; build_config() validates the merged result so an
    invalid file value can be corrected from the command line.
    """

    def __init__(self, config_file: str = None):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to CONFIG_FILE env var or config.yaml)
        """
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", "config.yaml")
        self.config_file = config_file
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "registry": {"region": DEFAULT_REGION, "host": None},
            "kubernetes": {"exclude_namespaces": list(DEFAULT_EXCLUDED_NAMESPACES)},
            "cleanup": {
                "days": DEFAULT_RETENTION_DAYS,
                "repos": [],
                "exclude_repos": [],
            },
            "concurrency": {"max_workers": 4},
        }

        if not os.path.exists(self.config_file):
            logging.warning(f"Config file {self.config_file} not found, using defaults")
            return default_config

        try:
            with open(self.config_file, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigValidationError([f"Could not read config file {self.config_file}: {e}"]) from e

        if not isinstance(user_config, dict):
            raise ConfigValidationError([f"Config file {self.config_file} must contain a mapping at the top level"])
        return self._merge_config(default_config, user_config)

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = copy.deepcopy(default)
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    # Registry configuration
    def get_region(self) -> str:
        """Get AWS region from environment or config"""
        return (
            os.environ.get("AWS_REGION")
            or os.environ.get("AWS_DEFAULT_REGION")
            or self.config["registry"]["region"]
        )

    def get_registry_host(self) -> Optional[str]:
        """Get the registry host used to select pod images (None disables the filter)"""
        return os.environ.get("REGISTRY_HOST") or self.config["registry"].get("host")

    # Kubernetes configuration
    def get_exclude_namespaces(self) -> Tuple[str, ...]:
        env_value = os.environ.get("EXCLUDE_NAMESPACES")
        if env_value is not None:
            return _as_tuple(env_value)
        return _as_tuple(self.config["kubernetes"]["exclude_namespaces"])

    # Cleanup configuration
    def get_retention_days(self) -> Any:
        """Get retention days as configured; build_config() coerces it"""
        return os.environ.get("RETENTION_DAYS") or self.config["cleanup"]["days"]

    def get_repos(self) -> Tuple[str, ...]:
        return _as_tuple(self.config["cleanup"]["repos"])

    def get_exclude_repos(self) -> Tuple[str, ...]:
        return _as_tuple(self.config["cleanup"]["exclude_repos"])

    def get_max_workers(self) -> Any:
        """Get max workers as configured; build_config() coerces it"""
        return os.environ.get("MAX_WORKERS") or self.config["concurrency"]["max_workers"]

    def build_config(self, **overrides: Any) -> CleanerConfig:
        """Build the immutable run configuration.

        Keyword arguments whose value is None are ignored, so argparse
        namespaces can be passed through unchanged. Committing is never read
        from the file or environment; pass ``commit`` explicitly.

        Raises:
            ConfigValidationError: Listing every invalid value after overrides are applied
        """
        values = {
            "repos": self.get_repos(),
            "exclude_repos": self.get_exclude_repos(),
            "exclude_namespaces": self.get_exclude_namespaces(),
            "days": self.get_retention_days(),
            "region": self.get_region(),
            "registry_host": self.get_registry_host(),
            "max_workers": self.get_max_workers(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return CleanerConfig().with_overrides(**values)
        except ConfigValidationError as e:
            logging.error("Configuration validation failed:\n  " + "\n  ".join(e.errors))
            raise


def validate_values(days: float, max_workers: int, region: str, exclude_namespaces: Iterable[str]) -> List[str]:
    """Return a list of validation error messages (empty when valid)"""
    errors = []

    if not isinstance(days, (int, float)) or days < 0:
        errors.append(f"days must be a non-negative number, got: {days}")

    if not isinstance(max_workers, int) or max_workers < 1:
        errors.append(f"max_workers must be a positive integer, got: {max_workers}")
    elif max_workers > 64:
        logging.warning(f"Configuration warning: max_workers is very high ({max_workers})")

    if not region or not str(region).strip():
        errors.append("AWS region is required and cannot be empty")

    for namespace in exclude_namespaces:
        if not _is_valid_k8s_name(namespace):
            errors.append(
                f"Namespace '{namespace}' is not a valid Kubernetes name (lowercase alphanumeric and hyphens only)"
            )

    return errors


def _is_valid_k8s_name(name: str) -> bool:
    """Validate a Kubernetes namespace name (RFC 1123 label)"""
    return bool(re.match(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$", name)) and len(name) <= 63
