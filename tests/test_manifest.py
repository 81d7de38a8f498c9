"""Unit tests for straceCopy.manifest module."""

import pytest
from straceCopy.core import ManifestError
from straceCopy.manifest import (
    build_manifest,
    get_manifest_summary,
    load_manifest,
    validate_manifest,
    write_manifest,
)


def create_result(copy, link=None, link_target=None):
    """Helper shaped like replicate_path's return value."""
    return {
        "source": copy,
        "canonical": copy,
        "copy": copy,
        "link": link,
        "link_target": link_target,
    }


class TestBuildManifest:
    """Tests for summarizing replication results."""

    def test_collects_files_and_links(self):
        """Should list each copied file and link once, sorted."""
        results = [
            create_result("/dst/lib/libfoo.so.1.2", "/dst/lib/libfoo.so.1", "libfoo.so.1.2"),
            create_result("/dst/lib/libc.so.6"),
            create_result("/dst/lib/libfoo.so.1.2", "/dst/lib/libfoo.so.1", "libfoo.so.1.2"),
        ]
        manifest = build_manifest(results, "/usr/", "/dst", logs=["app.log"])
        assert manifest == {
            "prefix": "/usr/",
            "destination": "/dst",
            "logs": ["app.log"],
            "files": ["/dst/lib/libc.so.6", "/dst/lib/libfoo.so.1.2"],
            "links": [{"link": "/dst/lib/libfoo.so.1", "target": "libfoo.so.1.2"}],
        }

    def test_empty_run(self):
        """Should produce empty lists for a run that copied nothing."""
        manifest = build_manifest([], "/usr/", "/dst")
        assert manifest["files"] == []
        assert manifest["links"] == []
        assert manifest["logs"] == []


class TestManifestFile:
    """Tests for reading and writing manifest files."""

    def test_written_manifest_loads(self, tmp_path):
        """Should load back what was written."""
        manifest = build_manifest(
            [create_result("/dst/lib/libz.so.1.3", "/dst/lib/libz.so.1", "libz.so.1.3")],
            "/usr/", "/dst",
        )
        path = tmp_path / "manifest.yaml"
        write_manifest(manifest, path)
        assert load_manifest(path) == manifest

    def test_invalid_yaml(self, tmp_path):
        """Should raise ManifestError for unparsable YAML."""
        path = tmp_path / "manifest.yaml"
        path.write_text("files: [unclosed\n")
        with pytest.raises(ManifestError):
            load_manifest(path)

    def test_missing_file(self, tmp_path):
        """Should raise FileNotFoundError for a missing manifest."""
        with pytest.raises(FileNotFoundError):
            load_manifest(tmp_path / "missing.yaml")


class TestValidateManifest:
    """Tests for the validate_manifest function."""

    def test_valid_manifest_passes(self):
        """Should not raise for a valid manifest."""
        validate_manifest({"prefix": "/usr/", "destination": "/dst", "files": [], "links": []})

    def test_empty_manifest_fails(self):
        """Should raise ManifestError for an empty manifest."""
        with pytest.raises(ManifestError) as exc_info:
            validate_manifest(None, "m.yaml")
        assert "empty" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["prefix", "destination", "files", "links"])
    def test_missing_field_fails(self, field):
        """Should raise ManifestError naming the missing field."""
        manifest = {"prefix": "/usr/", "destination": "/dst", "files": [], "links": []}
        del manifest[field]
        with pytest.raises(ManifestError) as exc_info:
            validate_manifest(manifest, "m.yaml")
        assert field in str(exc_info.value)

    def test_files_must_be_list(self):
        """Should raise ManifestError when files is not a list."""
        with pytest.raises(ManifestError) as exc_info:
            validate_manifest({"prefix": "/usr/", "destination": "/dst", "files": "x", "links": []})
        assert "'files' must be a list" in str(exc_info.value)

    def test_link_entry_needs_target(self):
        """Should raise ManifestError for a link entry without a target."""
        manifest = {"prefix": "/usr/", "destination": "/dst", "files": [], "links": [{"link": "/dst/a"}]}
        with pytest.raises(ManifestError) as exc_info:
            validate_manifest(manifest)
        assert "links.target" in str(exc_info.value)


def test_summary_counts():
    """Should count files and links in the summary."""
    manifest = {"prefix": "/usr/", "destination": "/dst", "logs": ["a.log"],
                "files": ["/dst/a", "/dst/b"], "links": [{"link": "/dst/c", "target": "a"}]}
    summary = get_manifest_summary(manifest)
    assert "Files copied: 2" in summary
    assert "Links created: 1" in summary
    assert "Prefix: /usr/" in summary
