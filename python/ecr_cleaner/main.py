#!/usr/bin/env python3
"""
ECR Cleaner

Deletes ECR image tags that no pod in the cluster references and that are
older than the retention window. Runs in dry-run mode unless --yes is given.

Configuration is sourced from (highest priority first):
  1. Command line flags
  2. Environment variables (AWS_REGION, REGISTRY_HOST, RETENTION_DAYS, ...)
  3. config.yaml (or the file named by --config / CONFIG_FILE)
"""

import argparse
import logging
import sys
from typing import List, Optional

from ecr_cleaner.config_manager import ConfigManager
from ecr_cleaner.error_utils import ActionableError
from ecr_cleaner.logging_utils import get_logger, log_exception, setup_logging
from ecr_cleaner.pipeline import EcrCleaner
from ecr_cleaner.report_utils import format_report_table, report_to_json, save_json


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="ecr-cleaner",
        description="Delete ECR images that are not used by any pod and are older than a retention window",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview what would be deleted (dry run, 90 day retention)
  ecr-cleaner

  # Actually delete images older than 30 days
  ecr-cleaner --days 30 --yes

  # Only consider two repositories and ignore the monitoring namespace
  ecr-cleaner -r team/api team/web -x kube-system monitoring

  # Save the report as JSON
  ecr-cleaner --output reports/ecr-cleanup.json
        """,
    )

    parser.add_argument("-r", "--repos", nargs="+", help="Explicitly include ECR repositories")
    parser.add_argument("-e", "--exclude-repos", nargs="+", help="Exclude ECR repositories from deletion")
    parser.add_argument(
        "-x",
        "--exclude-namespaces",
        nargs="*",
        help="Exclude namespaces from the pod search (default: kube-system)",
    )
    parser.add_argument(
        "-d", "--days", type=float, help="Max number of days to keep an unused image (default: 90)"
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Commit to deletion (default is dry-run)")
    parser.add_argument("--config", help="Path to config.yaml (default: CONFIG_FILE env var or ./config.yaml)")
    parser.add_argument("--region", help="AWS region of the registry (default: from config or us-east-1)")
    parser.add_argument(
        "--registry-host",
        help="Only count pod images pulled from this registry host (e.g. 123456789012.dkr.ecr.us-east-1.amazonaws.com)",
    )
    parser.add_argument("--max-workers", type=int, help="Maximum number of parallel workers (default: 4)")
    parser.add_argument("--output", help="Also write the report as JSON to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    args = parse_arguments(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    logger = get_logger(__name__)

    try:
        config = ConfigManager(config_file=args.config).build_config(
            repos=args.repos,
            exclude_repos=args.exclude_repos,
            exclude_namespaces=args.exclude_namespaces,
            days=args.days,
            commit=args.yes,
            region=args.region,
            registry_host=args.registry_host,
            max_workers=args.max_workers,
        )

        report = EcrCleaner(config).run()
    except KeyboardInterrupt:
        logger.warning("Cleanup interrupted by user")
        return 1
    except ActionableError as e:
        print(e, file=sys.stderr)
        log_exception(logger, "Cleanup failed", exc_info=e)
        return 1
    except Exception as e:
        print(f"Cleanup failed: {e}", file=sys.stderr)
        log_exception(logger, "Error in main", exc_info=e)
        return 1

    if report is None:
        print("Nothing to delete")
        return 0

    logger.info("\n" + format_report_table(report, dry_run=config.dry_run))
    print(report_to_json(report))

    if args.output:
        try:
            save_json(args.output, report)
        except OSError as e:
            print(f"Could not write report to {args.output}: {e}", file=sys.stderr)
            return 1

    if config.dry_run:
        logger.info("DRY RUN COMPLETED - no images were deleted. Run with --yes to delete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
