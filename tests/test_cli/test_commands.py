"""Tests for the jd-refine CLI."""

import copy
import json

import pytest
from typer.testing import CliRunner

from jd_refiner.main import app
from jd_refiner.refinement import FeedbackLedger, RefinementHistory, RefinementResult

runner = CliRunner()


@pytest.fixture
def document_path(tmp_path, document):
    path = tmp_path / "jd.json"
    path.write_text(json.dumps(document))
    return path


class TestSectionsCommand:
    """Tests for `jd-refine sections`."""

    def test_lists_sections(self, document_path):
        result = runner.invoke(app, ["sections", str(document_path)])

        assert result.exit_code == 0
        assert "skills-tools" in result.output
        assert "Recommended Role" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["sections", str(tmp_path / "missing.json")])
        assert result.exit_code == 1


class TestExportCommand:
    """Tests for `jd-refine export-pdf`."""

    def test_default_output_path(self, document_path):
        result = runner.invoke(app, ["export-pdf", str(document_path)])

        assert result.exit_code == 0
        assert document_path.with_suffix(".pdf").read_bytes().startswith(b"%PDF")


class TestHistoryCommand:
    """Tests for `jd-refine history`."""

    def test_no_history(self, document_path):
        result = runner.invoke(app, ["history", str(document_path)])

        assert result.exit_code == 0
        assert "No refinement history" in result.output

    def test_undo_restores_document(self, document_path, document):
        refined = copy.deepcopy(document)
        refined["risks"] = []
        record = RefinementHistory.create("jd", document_path=document_path)
        record.add(
            FeedbackLedger.model_validate({"risks": {"satisfied": False, "feedback": "none"}}),
            document,
            RefinementResult(updated_document=refined, summary="Cleared risks"),
        )
        record.save()
        document_path.write_text(json.dumps(refined))

        result = runner.invoke(app, ["history", str(document_path), "--undo"])

        assert result.exit_code == 0
        assert json.loads(document_path.read_text()) == document
        assert RefinementHistory.load_for_document(document_path).current_index == -1
