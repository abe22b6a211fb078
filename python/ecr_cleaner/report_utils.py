"""
Utility functions for building, rendering and saving the deletion report.

This module provides functions to:
- Aggregate per-repository deletion results into the final report
- Render a summary table of the report
- Save the report as JSON
"""
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from tabulate import tabulate

from ecr_cleaner.deletion import RepositoryDeletionResult
from ecr_cleaner.logging_utils import get_logger

logger = get_logger(__name__)


# ============================================================================
# Aggregation
# ============================================================================

def build_report(results: Mapping[str, RepositoryDeletionResult]) -> Optional[Dict[str, Dict[str, Any]]]:
    """Collect per-repository results into one report.

    Returns:
        repository name -> {failures, imagesDeleted, count}, or None when no
        repository produced a result ("nothing to delete")
    """
    if not results:
        return None
    return {repository_name: result.to_dict() for repository_name, result in results.items()}


# ============================================================================
# Rendering
# ============================================================================

def format_report_table(report: Optional[Mapping[str, Mapping[str, Any]]], dry_run: bool = False) -> str:
    """Render a report as a grid table, one row per repository plus a total"""
    if not report:
        return "Nothing to delete"

    deleted_header = "Would delete" if dry_run else "Deleted"
    headers = ["Repository", deleted_header, "Failures"]
    rows = []
    total_deleted = total_failures = 0
    for repository_name in sorted(report):
        entry = report[repository_name]
        failures = len(entry.get("failures") or [])
        rows.append([repository_name, entry.get("count", 0), failures])
        total_deleted += entry.get("count", 0)
        total_failures += failures
    rows.append(["TOTAL", total_deleted, total_failures])
    return tabulate(rows, headers=headers, tablefmt="grid")


# ============================================================================
# Report Saving Functions
# ============================================================================

def _to_serializable(data: Any) -> Any:
    """Recursively convert values json cannot encode.

    Converts:
    - datetime/date objects to ISO format strings
    - set/frozenset to sorted lists
    - tuples to lists
    """
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, (set, frozenset)):
        try:
            return [_to_serializable(item) for item in sorted(data)]
        except TypeError:
            return [_to_serializable(item) for item in data]
    elif isinstance(data, dict):
        return {k: _to_serializable(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [_to_serializable(item) for item in data]
    return data


def report_to_json(report: Any) -> str:
    """Serialize a report (or any nested structure) to indented JSON"""
    return json.dumps(_to_serializable(report), indent=2)


def save_json(path: str, data: Any) -> str:
    """
    Write JSON data to a file with indentation, creating parent directories.

    Args:
        path: Path to save the JSON file
        data: Data to save

    Returns:
        Path to the saved file
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    with open(p, "w") as f:
        json.dump(_to_serializable(data), f, indent=2)
    logger.info(f"Saved JSON to {p}")
    return str(p)
