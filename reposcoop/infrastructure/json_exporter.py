"""JSON import/export of releases and grouped results for inspection."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from reposcoop.domain.models import GroupedRecord, GroupedResult, PackageGroup, ReleaseRecord


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _grouped_record_to_dict(release: GroupedRecord) -> Dict[str, Any]:
    data = release.record.to_dict()
    data.update(
        packageName=release.package_name,
        version=release.version,
        sortKey=release.sort_key,
    )
    return data


def _group_to_dict(group: PackageGroup) -> Dict[str, Any]:
    return {
        "name": group.name,
        "releases": [_grouped_record_to_dict(release) for release in group.releases],
        "latestRelease": _grouped_record_to_dict(group.latest_release),
        "releaseCount": group.release_count,
    }


def grouped_result_to_dict(result: GroupedResult) -> Dict[str, Any]:
    """Convert a grouped result to plain JSON-serializable data."""
    return {
        "groups": [_group_to_dict(group) for group in result.groups],
        "totalReleases": result.total_releases,
    }


def export_grouped_result(result: GroupedResult, output_file: PathLike) -> Path:
    """Write a grouped result as pretty-printed JSON.

    Args:
        result: Grouped releases to write
        output_file: Destination path

    Returns:
        Path of the written file
    """
    path = Path(output_file)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(grouped_result_to_dict(result), f, indent=2, ensure_ascii=False)
        f.write("\n")
    logger.info(f"Exported {result.total_releases} releases in {len(result.groups)} group(s) to {path}")
    return path


def load_release_records(input_file: PathLike) -> List[ReleaseRecord]:
    """Read a JSON array of release-like objects.

    Raises:
        ValueError: The file does not contain a JSON array
    """
    with open(input_file, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("Input JSON must be an array of release-like objects")

    return [ReleaseRecord.from_api(item, index) for index, item in enumerate(raw)]


def default_output_path(input_file: PathLike) -> Path:
    """Derive ``foo.output.json`` from ``foo.input.json`` or ``foo.json``."""
    name = str(input_file)
    lowered = name.lower()
    if lowered.endswith(".input.json"):
        return Path(name[:-len(".input.json")] + ".output.json")
    if lowered.endswith(".json"):
        return Path(name[:-len(".json")] + ".output.json")
    return Path(name + ".output.json")
