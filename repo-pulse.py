#!/usr/bin/env python3
"""
Repo Pulse
Reports commit, pull request and code ownership activity for a repository.

Usage: repo-pulse.py [REPO_PATH]
Settings are read from the environment (or a .env file).
"""

import os
import sys
import logging
from dotenv import load_dotenv

from repo_pulse.analyzer.core import PulseAnalyzer
from repo_pulse.analyzer.visualization import DEFAULT_MEDIUM_THRESHOLD, DEFAULT_SMALL_THRESHOLD
from repo_pulse.exceptions import PulseError
from repo_pulse.output import OUTPUT_FORMATS, ReportFormatter

# Configure logging (can be overridden by LOG_LEVEL environment variable)
log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s %(levelname)s: %(message)s',
    datefmt='%m/%d/%Y %I:%M:%S %p'
)


def _threshold_from_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        threshold = float(value)
    except ValueError:
        logging.warning(f"Invalid {name} value '{value}', using default: {default}")
        return default
    if threshold <= 0:
        logging.warning(f"{name} must be positive, using default: {default}")
        return default
    return threshold


def main():
    """Main entry point for the script."""
    # Load environment variables from .env file if it exists
    load_dotenv()

    repo_path = sys.argv[1] if len(sys.argv) > 1 else os.environ.get('REPO_PATH', '.')
    github_repo = os.environ.get('GITHUB_REPO') or None
    token = os.environ.get('GITHUB_TOKEN') or None
    since = os.environ.get('SINCE') or None
    until = os.environ.get('UNTIL') or None

    small_threshold = _threshold_from_env('SMALL_THRESHOLD', DEFAULT_SMALL_THRESHOLD)
    medium_threshold = _threshold_from_env('MEDIUM_THRESHOLD', DEFAULT_MEDIUM_THRESHOLD)

    output_format = os.environ.get('OUTPUT_FORMAT', 'json').strip().lower()
    if output_format not in OUTPUT_FORMATS:
        logging.warning(f"Invalid OUTPUT_FORMAT value '{output_format}', using default: json")
        logging.warning(f"Valid options: {', '.join(OUTPUT_FORMATS)}")
        output_format = 'json'

    output_file = os.environ.get('OUTPUT_FILE', 'repo-pulse-report.json')

    # Check if caching should be disabled
    use_cache = os.environ.get('USE_CACHE', 'true').lower() not in ('false', '0', 'no')

    if github_repo:
        logging.info(f"Using GitHub repository from environment: {github_repo}")

    print("Analyzing repository activity...")
    try:
        analyzer = PulseAnalyzer(
            repo_path=repo_path,
            github_repo=github_repo,
            token=token,
            since=since,
            until=until,
            small_threshold=small_threshold,
            medium_threshold=medium_threshold,
            use_cache=use_cache,
        )
        report = analyzer.analyze()
    except (PulseError, ValueError) as e:
        logging.error(f"Error: {e}")
        sys.exit(1)

    formatter = ReportFormatter(report)
    saved_path = formatter.save(output_file, output_format)
    print(f"Report saved to {saved_path}")

    if output_format in ('pretty', 'summary'):
        formatter.print_summary()


if __name__ == "__main__":
    main()
