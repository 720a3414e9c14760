"""
Tests for model file validation.

Covers classification of each file, the exit code policy and the
printed report.
"""
from pathlib import Path
from unittest.mock import patch

import pytest

from comfypod.config.constants import DEFAULT_MODEL_SPECS
from comfypod.core.types import ModelSpec, ValidationStatus
from comfypod.models.validator import (
    ValidationOutcome,
    classify_model,
    list_model_files,
    looks_like_html,
    print_model_report,
    validate_models,
)

SPECS = (
    ModelSpec("checkpoints/model.safetensors", 4096),
    ModelSpec("text_encoders/encoder.safetensors", 2048),
    ModelSpec("vae/vae.safetensors", 1024),
)


def write_model(model_dir: Path, relative: str, size: int, head: bytes = b"") -> Path:
    path = model_dir / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(head + b"\x00" * max(size - len(head), 0))
    return path


def write_all_valid(model_dir: Path) -> None:
    for spec in SPECS:
        write_model(model_dir, spec.relative_path, spec.minimum_size_bytes)


class TestClassifyModel:
    """Tests for single-file classification."""

    def test_valid_file(self, tmp_path):
        """A large enough binary file is VALID."""
        write_model(tmp_path, "vae/vae.safetensors", 1024, b"\x8a\x00safetensors")
        check = classify_model(SPECS[2], tmp_path)
        assert check.status == ValidationStatus.VALID
        assert check.size_bytes == 1024

    def test_missing_file(self, tmp_path):
        """An absent file is MISSING and not corrupted."""
        check = classify_model(SPECS[0], tmp_path)
        assert check.status == ValidationStatus.MISSING
        assert not check.status.is_corrupted
        assert check.size_bytes is None

    def test_directory_counts_as_missing(self, tmp_path):
        """A directory at the model path is not a model file."""
        (tmp_path / "vae" / "vae.safetensors").mkdir(parents=True)
        assert classify_model(SPECS[2], tmp_path).status == ValidationStatus.MISSING

    def test_too_small_file(self, tmp_path):
        """A file under the threshold is TOO_SMALL."""
        write_model(tmp_path, "vae/vae.safetensors", 1023)
        check = classify_model(SPECS[2], tmp_path)
        assert check.status == ValidationStatus.TOO_SMALL
        assert check.status.is_corrupted

    def test_too_small_wins_over_html(self, tmp_path):
        """Small HTML files are classified by size first."""
        write_model(tmp_path, "vae/vae.safetensors", 200, b"<!DOCTYPE html><html>")
        assert classify_model(SPECS[2], tmp_path).status == ValidationStatus.TOO_SMALL

    @pytest.mark.parametrize("head", [
        b"<!DOCTYPE html>",
        b"<!doctype html>",
        b"<html><body>403 Forbidden</body></html>",
        b"\n\n  <HTML>",
    ])
    def test_html_error_page(self, tmp_path, head):
        """HTML signatures in the first bytes mark the file CORRUPTED_HTML."""
        write_model(tmp_path, "vae/vae.safetensors", 4096, head)
        check = classify_model(SPECS[2], tmp_path)
        assert check.status == ValidationStatus.CORRUPTED_HTML
        assert check.status.is_corrupted

    def test_html_after_sniff_window_is_valid(self, tmp_path):
        """Only the first 100 bytes are sniffed."""
        write_model(tmp_path, "vae/vae.safetensors", 4096, b"\x00" * 100 + b"<html>")
        assert classify_model(SPECS[2], tmp_path).status == ValidationStatus.VALID

    def test_looks_like_html(self):
        """Signature matching is case-insensitive."""
        assert looks_like_html(b"xx<HtMl")
        assert looks_like_html(b"<!DocType html")
        assert not looks_like_html(b"\x00\x01binary")
        assert not looks_like_html(b"")

    def test_unreadable_file_is_reported(self, tmp_path, log_messages):
        """A file that cannot be opened is judged by size and logged as a warning."""
        write_model(tmp_path, "vae/vae.safetensors", 4096)
        with patch("comfypod.models.validator.open", side_effect=PermissionError("denied"), create=True):
            check = classify_model(SPECS[2], tmp_path)
        assert check.status == ValidationStatus.VALID
        assert any(
            m.startswith("WARNING|") and "content sniffing" in m and "denied" in m
            for m in log_messages
        )


class TestModelReport:
    """Tests for aggregation and exit policy."""

    def test_all_valid(self, tmp_path):
        """All files valid -> COMPLETE, exit 0."""
        write_all_valid(tmp_path)
        report = validate_models(tmp_path, SPECS)
        assert (report.found, report.missing, report.corrupted) == (3, 0, 0)
        assert report.outcome == ValidationOutcome.COMPLETE
        assert report.exit_code == 0

    def test_all_missing(self, tmp_path):
        """Nothing downloaded yet is a soft warning."""
        report = validate_models(tmp_path, SPECS)
        assert report.missing == 3
        assert report.corrupted == 0
        assert report.outcome == ValidationOutcome.DOWNLOADING
        assert report.exit_code == 0

    def test_some_missing(self, tmp_path):
        """Found some, missing some, no corruption -> INCOMPLETE, exit 0."""
        write_model(tmp_path, SPECS[0].relative_path, SPECS[0].minimum_size_bytes)
        report = validate_models(tmp_path, SPECS)
        assert (report.found, report.missing) == (1, 2)
        assert report.outcome == ValidationOutcome.INCOMPLETE
        assert report.exit_code == 0

    def test_corruption_fails(self, tmp_path):
        """Any corrupted file -> FAILED, exit 1, even with missing files."""
        write_model(tmp_path, SPECS[0].relative_path, 10)
        report = validate_models(tmp_path, SPECS)
        assert report.corrupted == 1
        assert report.missing == 2
        assert report.outcome == ValidationOutcome.FAILED
        assert report.exit_code == 1

    def test_too_small_and_html_share_bucket(self, tmp_path):
        """TOO_SMALL and CORRUPTED_HTML are both counted as corrupted."""
        write_model(tmp_path, SPECS[0].relative_path, 10)
        write_model(tmp_path, SPECS[1].relative_path, 4096, b"<html>")
        write_model(tmp_path, SPECS[2].relative_path, 1024)
        report = validate_models(tmp_path, SPECS)
        assert (report.found, report.missing, report.corrupted) == (1, 0, 2)

    def test_checks_keep_spec_order(self, tmp_path):
        """One check per spec, in spec order."""
        report = validate_models(tmp_path, SPECS)
        assert [c.spec for c in report.checks] == list(SPECS)

    def test_to_dict(self, tmp_path):
        """The JSON report carries counts and per-model status."""
        write_all_valid(tmp_path)
        data = validate_models(tmp_path, SPECS).to_dict()
        assert data["found"] == 3
        assert data["outcome"] == "complete"
        assert data["models"][0]["status"] == "valid"

    def test_files_are_not_modified(self, tmp_path):
        """Validation only reads."""
        path = write_model(tmp_path, SPECS[1].relative_path, 4096, b"<html>")
        before = path.read_bytes()
        validate_models(tmp_path, SPECS)
        assert path.read_bytes() == before


class TestModelReportOutput:
    """End-to-end report scenarios."""

    def test_scenario_all_present(self, tmp_path, ui):
        """Three valid files print 'Found: 3' and exit 0."""
        write_all_valid(tmp_path)
        report = validate_models(tmp_path, SPECS)
        print_model_report(report, ui)

        output = ui.console.file.getvalue()
        assert "Found: 3" in output
        assert "Missing: 0" in output
        assert "Corrupted: 0" in output
        assert "All models validated successfully" in output
        assert report.exit_code == 0

    def test_scenario_html_page(self, tmp_path, ui):
        """A large HTML error page is reported as corrupted and exits 1."""
        write_model(tmp_path, SPECS[0].relative_path, 4096)
        write_model(tmp_path, SPECS[1].relative_path, 4096, b"<!DOCTYPE html>")
        write_model(tmp_path, SPECS[2].relative_path, 1024)
        report = validate_models(tmp_path, SPECS)
        print_model_report(report, ui)

        output = ui.console.file.getvalue()
        assert "Corrupted: 1" in output
        assert "CORRUPTED (HTML)" in output
        assert "Model validation FAILED" in output
        assert report.exit_code == 1

    def test_directory_listing(self, tmp_path, ui):
        """Every file under the model dir is listed, expected or not."""
        write_all_valid(tmp_path)
        write_model(tmp_path, "loras/extra.safetensors", 10)
        print_model_report(validate_models(tmp_path, SPECS), ui)

        assert "Model Directory Contents" in ui.console.file.getvalue()
        listed = [path.name for path, _ in list_model_files(tmp_path)]
        assert "extra.safetensors" in listed
        assert len(listed) == 4

    def test_listing_of_missing_dir(self, tmp_path):
        """A missing model dir lists nothing."""
        assert list_model_files(tmp_path / "nope") == []


class TestDefaultSpecs:
    """Tests for the built-in model table."""

    def test_three_models(self):
        """The Qwen workflow needs a checkpoint, a text encoder and a VAE."""
        paths = [s.relative_path for s in DEFAULT_MODEL_SPECS]
        assert len(paths) == 3
        assert any(p.startswith("checkpoints/") for p in paths)
        assert any(p.startswith("text_encoders/") for p in paths)
        assert any(p.startswith("vae/") for p in paths)

    def test_thresholds_positive(self):
        """Every threshold, including the sub-GB VAE, rejects empty files."""
        assert all(s.minimum_size_bytes > 0 for s in DEFAULT_MODEL_SPECS)
