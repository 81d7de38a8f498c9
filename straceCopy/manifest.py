"""Replication manifest utilities for strace-copy."""

import os

import yaml

from .core import ManifestError


REQUIRED_FIELDS = ["prefix", "destination", "files", "links"]
REQUIRED_LINK_FIELDS = ["link", "target"]


def build_manifest(results, prefix, destination, logs=None):
    """Summarize a run's replication results as a manifest dictionary.

    Args:
        results: Dictionaries returned by replicate_path
        prefix: Source prefix used for the run
        destination: Root of the replicated tree
        logs: strace logs that were read

    Returns:
        A dictionary ready to be dumped as YAML
    """
    files = set()
    links = {}

    for r in results:
        files.add(r["copy"])
        if r.get("link"):
            links[r["link"]] = r["link_target"]

    return {
        "prefix": os.fspath(prefix),
        "destination": os.fspath(destination),
        "logs": [os.fspath(log) for log in (logs or [])],
        "files": sorted(files),
        "links": [{"link": link, "target": links[link]} for link in sorted(links)],
    }


def write_manifest(manifest, output_file):
    with open(output_file, 'w') as f:
        yaml.dump(manifest, f, default_flow_style=False, sort_keys=False)


def load_manifest(filepath):
    """Load and validate a manifest from a YAML file.

    Raises:
        ManifestError: If the manifest is invalid
        FileNotFoundError: If the file doesn't exist
    """
    try:
        with open(filepath, 'r') as f:
            manifest = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"Could not parse YAML: {e}")

    validate_manifest(manifest, filepath)
    return manifest


def validate_manifest(manifest, filepath="<manifest>"):
    """Validate that a manifest has all required fields and correct types.

    Raises:
        ManifestError: If the manifest is invalid
    """
    if not isinstance(manifest, dict):
        raise ManifestError(f"Manifest '{filepath}' is empty or invalid YAML")

    for field in REQUIRED_FIELDS:
        if field not in manifest:
            raise ManifestError(f"Manifest '{filepath}' missing required field: {field}")

    for field in ("prefix", "destination"):
        if not isinstance(manifest[field], str):
            raise ManifestError(f"Manifest '{filepath}': '{field}' must be a string")

    if not isinstance(manifest["files"], list):
        raise ManifestError(f"Manifest '{filepath}': 'files' must be a list")

    if not isinstance(manifest["links"], list):
        raise ManifestError(f"Manifest '{filepath}': 'links' must be a list")

    for entry in manifest["links"]:
        if not isinstance(entry, dict):
            raise ManifestError(f"Manifest '{filepath}': each entry of 'links' must be a dictionary")
        for field in REQUIRED_LINK_FIELDS:
            if field not in entry:
                raise ManifestError(f"Manifest '{filepath}' missing 'links.{field}' field")


def get_manifest_summary(manifest):
    """Get a human-readable summary of the manifest."""
    lines = []
    lines.append(f"Prefix: {manifest.get('prefix', '<not specified>')}")
    lines.append(f"Destination: {manifest.get('destination', '<not specified>')}")
    lines.append(f"Logs read: {len(manifest.get('logs', []))}")
    lines.append(f"Files copied: {len(manifest.get('files', []))}")
    lines.append(f"Links created: {len(manifest.get('links', []))}")
    return '\n'.join(lines)
