#!/usr/bin/env python3
"""
Store Locator Territory Tracker CLI

Usage:
    python run.py --brand example-seltzer          # Single brand
    python run.py --all                            # All enabled brands concurrently
    python run.py --all --exclude example-tonic    # All except specified
    python run.py --status                         # Active locations by brand and region
    python run.py --discover capture.har           # Find locator API calls in a HAR capture
"""

import argparse
import asyncio
import json
import logging
import re
import sys
from typing import Dict, List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

import yaml

from src.shared.http import Fetcher
from src.shared.logging_config import setup_logging
from src.shared.run_tracker import RunRecorder, get_latest_run
from src.shared.utils import DEFAULT_CONFIG_PATH, get_enabled_brands, get_settings, load_config
from src.collector import BrandConfig, OutcomeStatus, collect_all
from src.discovery import calls_from_har, load_har, write_discovery_output
from src.location_store import JsonLocationStore
from src.territory import TerritoryTracker

_SLUG_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')


def validate_config_on_startup(config_path: str = DEFAULT_CONFIG_PATH) -> List[str]:
    """Validate configuration file on startup.

    Checks for common configuration errors before collecting.

    Args:
        config_path: Path to brands.yaml config file

    Returns:
        List of validation errors (empty if config is valid)
    """
    errors = []

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        return [f"Configuration file not found: {config_path}"]
    except yaml.YAMLError as e:
        return [f"Invalid YAML syntax in config file: {e}"]

    if not config:
        return ["Configuration file is empty"]

    if not isinstance(config, dict):
        return ["Configuration must be a dictionary"]

    if 'brands' not in config:
        errors.append("Missing required 'brands' section")
        return errors

    brands = config.get('brands') or {}
    if not isinstance(brands, dict):
        errors.append("'brands' must be a dictionary")
        return errors

    seen_ids: Dict[str, str] = {}
    for slug, brand_config in brands.items():
        prefix = f"Brand '{slug}'"

        if not isinstance(brand_config, dict):
            errors.append(f"{prefix}: configuration must be a dictionary")
            continue

        brand_id = str(brand_config.get('brand_id') or slug)
        if not _SLUG_RE.match(brand_id):
            errors.append(f"{prefix}: 'brand_id' may only contain letters, digits, '.', '_' and '-'")
        elif brand_id in seen_ids:
            errors.append(f"{prefix}: 'brand_id' {brand_id!r} already used by '{seen_ids[brand_id]}'")
        else:
            seen_ids[brand_id] = slug

        if 'enabled' in brand_config and not isinstance(brand_config['enabled'], bool):
            errors.append(f"{prefix}: 'enabled' must be true or false")

        locator_url = brand_config.get('locator_url')
        if locator_url is not None:
            if not isinstance(locator_url, str) or not locator_url.startswith(('http://', 'https://')):
                errors.append(f"{prefix}: 'locator_url' must be a valid HTTP/HTTPS URL")

        domain = brand_config.get('domain')
        if domain is not None and (not isinstance(domain, str) or not domain.strip()):
            errors.append(f"{prefix}: 'domain' must be a non-empty string")

    settings = config.get('settings')
    if settings is not None:
        if not isinstance(settings, dict):
            errors.append("'settings' section must be a dictionary")
        else:
            for field in ['timeout', 'max_retries', 'concurrency']:
                if field in settings and settings[field] is not None:
                    value = settings[field]
                    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                        errors.append(f"settings: '{field}' must be a positive number")

    return errors


def setup_parser() -> argparse.ArgumentParser:
    """Setup command line argument parser"""
    parser = argparse.ArgumentParser(
        description="Store Locator Territory Tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    # Brand selection
    brand_group = parser.add_mutually_exclusive_group()
    brand_group.add_argument(
        '--brand', '-b',
        type=str,
        help='Collect a single brand by slug'
    )
    brand_group.add_argument(
        '--all', '-a',
        action='store_true',
        help='Collect all enabled brands concurrently'
    )

    # Exclusions (for --all mode)
    parser.add_argument(
        '--exclude', '-e',
        type=str,
        nargs='+',
        default=[],
        help='Exclude specific brands when using --all'
    )

    # Configuration
    parser.add_argument(
        '--config',
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f'Brand registry file (default: {DEFAULT_CONFIG_PATH})'
    )
    parser.add_argument(
        '--data-dir',
        type=str,
        default=None,
        help='Directory for location and run files (overrides settings.data_dir)'
    )
    parser.add_argument(
        '--concurrency',
        type=int,
        default=None,
        help='Maximum brands collected at once (overrides settings.concurrency)'
    )

    # Other commands
    parser.add_argument(
        '--status',
        action='store_true',
        help='Show active location counts by brand and region'
    )
    parser.add_argument(
        '--discover',
        type=str,
        metavar='HAR_FILE',
        default=None,
        help='Scan a browser HAR capture for location API calls'
    )
    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='Write --discover results to this file instead of stdout'
    )

    # Logging
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Log file path (overrides settings.log_file)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    return parser


def get_brands_to_run(args, config: dict) -> List[str]:
    """Determine which brands to run based on arguments"""
    if args.brand:
        return [args.brand]
    if args.all:
        return [slug for slug in get_enabled_brands(config) if slug not in args.exclude]
    return []


def validate_cli_options(args, config: dict) -> List[str]:
    """Validate CLI option combinations against the loaded registry"""
    errors = []
    brands = config.get('brands') or {}

    if args.brand and args.brand not in brands:
        errors.append(f"Unknown brand: {args.brand}. Available: {', '.join(brands)}")
    for slug in args.exclude:
        if slug not in brands:
            errors.append(f"Unknown brand in --exclude: {slug}")
    if args.exclude and not args.all:
        errors.append("--exclude can only be used with --all")
    if args.concurrency is not None and args.concurrency < 1:
        errors.append("--concurrency must be at least 1")
    if args.output and not args.discover:
        errors.append("--output can only be used with --discover")

    return errors


def show_status(data_dir: str) -> None:
    """Show active location counts from the store"""
    store = JsonLocationStore(data_dir)

    print("\n" + "=" * 60)
    print("TERRITORY STATUS")
    print("=" * 60)

    counts = store.active_count_by_brand()
    if not counts:
        print("\n  No stored locations yet")
    for brand_id, count in counts.items():
        print(f"\n--- {brand_id} ---")
        print(f"  Active locations: {count}")
        regions = store.active_count_by_region(brand_id)
        if regions:
            print("  By region: " + ", ".join(f"{region}={n}" for region, n in regions.items()))

    latest = get_latest_run(data_dir)
    if latest:
        stats = latest.get('stats', {})
        print(f"\nLatest run: {latest.get('run_id')} ({latest.get('status')})")
        print(
            f"  {stats.get('succeeded', 0)} succeeded, "
            f"{stats.get('no_locator', 0)} without locator, "
            f"{stats.get('failed', 0)} failed"
        )

    print("\n" + "=" * 60)


def run_discovery(har_path: str, output_path: Optional[str]) -> int:
    """Print or write the location-like calls found in a HAR capture"""
    try:
        har = load_har(har_path)
    except (OSError, ValueError) as e:
        print(f"Could not read HAR file: {e}")
        return 1

    calls = calls_from_har(har)
    if not calls:
        print(
            "No location-like API calls found.\n"
            "Possible causes:\n"
            "  1. The page needs a ZIP code search before it loads stores\n"
            "  2. Store data is embedded in the HTML (JSON-LD or a script tag)\n"
            "  3. The capture was blocked; check the page in a normal browser first"
        )
        return 1

    if output_path:
        write_discovery_output(calls, output_path)
    else:
        print(json.dumps([call.to_dict() for call in calls], indent=2))
    return 0


async def collect(brands: List[BrandConfig], settings: dict) -> dict:
    """Run one collection batch with a single shared Fetcher"""
    tracker = TerritoryTracker(JsonLocationStore(settings['data_dir']))
    recorder = RunRecorder(settings['data_dir'])
    user_agents = [settings['user_agent']] if settings.get('user_agent') else None

    async with Fetcher(
        timeout=float(settings['timeout']),
        max_retries=int(settings['max_retries']),
        user_agents=user_agents,
    ) as fetcher:
        outcomes = await collect_all(fetcher, tracker, brands, int(settings['concurrency']), recorder=recorder)
    try:
        recorder.complete()
    except OSError as e:
        logging.error(f"Failed to finalize run record {recorder.run_id}: {e}")
    return outcomes


def main():
    """Main entry point"""
    parser = setup_parser()
    args = parser.parse_args()

    config = load_config(args.config)
    settings = get_settings(config)
    if args.data_dir:
        settings['data_dir'] = args.data_dir
    if args.concurrency is not None:
        settings['concurrency'] = args.concurrency
    if args.log_file:
        settings['log_file'] = args.log_file

    # Setup logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(settings['log_file'], level=log_level)

    cli_errors = validate_cli_options(args, config)
    if cli_errors:
        print("Invalid command line options:")
        for error in cli_errors:
            print(f"  - {error}")
        return 1

    if args.discover:
        return run_discovery(args.discover, args.output)

    if args.status:
        show_status(settings['data_dir'])
        return 0

    # Validate configuration on startup
    config_errors = validate_config_on_startup(args.config)
    if config_errors:
        print("Configuration errors found:")
        for error in config_errors:
            print(f"  - {error}")
        return 1

    slugs = get_brands_to_run(args, config)
    if not slugs:
        parser.print_help()
        return 1

    brands = [BrandConfig.from_config(slug, config['brands'][slug]) for slug in slugs]

    try:
        outcomes = asyncio.run(collect(brands, settings))
    except KeyboardInterrupt:
        logging.info("Collection interrupted by user")
        return 130

    print("\n" + "=" * 40)
    print("COLLECTION RESULTS")
    print("=" * 40)
    for outcome in outcomes.values():
        print(f"  {outcome.summary_line()}")

    failed = [o for o in outcomes.values() if o.status == OutcomeStatus.FAILED]
    return 1 if failed and len(failed) == len(outcomes) else 0


if __name__ == '__main__':
    sys.exit(main())
