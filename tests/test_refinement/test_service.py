"""Tests for refining saved analyses."""

import pytest

from jd_refiner.refinement import AccessDeniedError, AnalysisRefinementService
from jd_refiner.storage import AnalysisNotFoundError, JsonFileAnalysisStore, VersionConflictError

LEDGER = {"tools": {"satisfied": False, "feedback": "Drop Zapier"}}


def _drop_zapier(doc):
    doc["roles"][0]["tools"] = ["GHL", "Canva"]
    return doc


@pytest.fixture
def store(tmp_path):
    return JsonFileAnalysisStore(tmp_path)


@pytest.fixture
def saved(store, document):
    return store.save(document, owner_id="owner", title="Ops")


class TestRefineSaved:
    """Tests for AnalysisRefinementService.refine_saved."""

    @pytest.mark.asyncio
    async def test_saves_changed_document(self, make_engine, store, saved, tmp_path):
        engine, _ = make_engine(_drop_zapier)
        service = AnalysisRefinementService(engine, store, history_dir=tmp_path)

        outcome = await service.refine_saved(saved.id, "owner", LEDGER, expected_version=1)

        assert outcome.saved
        assert outcome.analysis.version == 2
        assert outcome.analysis.refinement_count == 1
        assert store.get(saved.id).document["roles"][0]["tools"] == ["GHL", "Canva"]
        assert store.history_path_for(saved.id).exists()

    @pytest.mark.asyncio
    async def test_unchanged_document_not_saved(self, make_engine, store, saved):
        engine, _ = make_engine()
        service = AnalysisRefinementService(engine, store)

        outcome = await service.refine_saved(saved.id, "owner", LEDGER)

        assert not outcome.saved
        assert outcome.result.changed_sections == []
        assert store.get(saved.id).version == 1

    @pytest.mark.asyncio
    async def test_other_owner_denied(self, make_engine, store, saved):
        engine, gateway = make_engine(_drop_zapier)
        service = AnalysisRefinementService(engine, store)

        with pytest.raises(AccessDeniedError) as exc_info:
            await service.refine_saved(saved.id, "intruder", LEDGER)

        assert exc_info.value.status_code == 403
        assert gateway.prompts == []

    @pytest.mark.asyncio
    async def test_stale_version_rejected(self, make_engine, store, saved, document):
        store.save(document, "owner", analysis_id=saved.id)
        engine, gateway = make_engine(_drop_zapier)
        service = AnalysisRefinementService(engine, store)

        with pytest.raises(VersionConflictError):
            await service.refine_saved(saved.id, "owner", LEDGER, expected_version=1)
        assert gateway.prompts == []

    @pytest.mark.asyncio
    async def test_concurrent_update_during_completion(self, make_engine, store, saved, document):
        """A write that lands while the model is running wins; the refinement is rejected."""
        engine, gateway = make_engine(_drop_zapier)
        service = AnalysisRefinementService(engine, store)

        def _concurrent_write(doc):
            store.save(document, "owner", analysis_id=saved.id)
            return _drop_zapier(doc)

        gateway.transform = _concurrent_write

        with pytest.raises(VersionConflictError):
            await service.refine_saved(saved.id, "owner", LEDGER)
        assert store.get(saved.id).document == document

    @pytest.mark.asyncio
    async def test_missing_analysis(self, make_engine, store):
        engine, _ = make_engine()
        service = AnalysisRefinementService(engine, store)

        with pytest.raises(AnalysisNotFoundError):
            await service.refine_saved("missing", "owner", LEDGER)
