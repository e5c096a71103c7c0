"""Group a local JSON file of releases by package and write the result as JSON.

Usage:
    python group_releases.py <input.json> [output.json] [--name REPO]

The aggregate group is named after ``--name`` when given, otherwise after
the input file name (``facebook.react.input.json`` -> ``react``).
"""
import os
import sys
import logging
from pathlib import Path
from reposcoop.domain.release_grouping import group_releases_by_package
from reposcoop.infrastructure.json_exporter import (
    default_output_path,
    export_grouped_result,
    load_release_records,
)


logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def derive_repository_name(input_file: str) -> str:
    """Guess the repository name from an ``owner.repo.input.json`` file name."""
    stem = Path(input_file).name
    for suffix in (".input.json", ".json"):
        if stem.lower().endswith(suffix):
            stem = stem[:-len(suffix)]
            break
    return stem.split(".")[-1] or "default"


def group_file(input_file: str, output_file: str = None, repository_name: str = None):
    """Group the releases in ``input_file`` and write them to ``output_file``.

    Args:
        input_file: JSON array of release-like objects
        output_file: Destination; derived from the input name when omitted
        repository_name: Name of the aggregate group
    """
    output_path = output_file or default_output_path(input_file)
    name = repository_name or derive_repository_name(input_file)

    releases = load_release_records(input_file)
    grouped = group_releases_by_package(releases, name)
    export_grouped_result(grouped, output_path)

    print(f"Grouped {grouped.total_releases} releases into {len(grouped.groups)} package group(s).")
    print(f"Output written to: {output_path}")
    return grouped


def main(argv):
    args = list(argv[1:])
    repository_name = None
    if "--name" in args:
        index = args.index("--name")
        if index + 1 >= len(args):
            logger.error("--name requires a value")
            return 1
        repository_name = args[index + 1]
        del args[index:index + 2]

    if not args:
        logger.error("Usage: group_releases.py <input.json> [output.json] [--name REPO]")
        return 1

    input_file = args[0]
    output_file = args[1] if len(args) > 1 else None

    if not os.path.exists(input_file):
        logger.error(f"Input file not found: {input_file}")
        return 1

    try:
        group_file(input_file, output_file, repository_name)
    except ValueError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"Failed to process releases: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
