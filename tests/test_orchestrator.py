"""
Tests for Generation Orchestrator

Tests for orchestrator.py
"""

import pytest

from errors import EmptyStoryError, ReferenceGatheringError, SessionError, StaleGenerationError
from fakes import FakeContinuator, FakeSynthesizer, make_image_url
from models import EntityKind, PanelContinuation, PageMode
from orchestrator import GenerationOrchestrator, GenerationStage
from scenes import CAMERA_SHOTS
from session import AuthoringSession
from utils import is_placeholder, parse_data_url


def _write(session, *descriptions):
    for scene, text in zip(session.scenes, descriptions):
        session.scenes.set_field(scene.scene_id, "description", text)


def _orchestrator(synthesizer=None, continuator=None, stages=None):
    return GenerationOrchestrator(
        synthesizer or FakeSynthesizer(),
        continuator or FakeContinuator(),
        on_stage=stages.append if stages is not None else None,
    )


class TestGenerate:
    """Running a generation up to candidate selection."""

    @pytest.mark.asyncio
    async def test_empty_story_rejected(self, session):
        """Test a blank story raises and leaves the orchestrator idle."""
        orchestrator = _orchestrator()

        with pytest.raises(EmptyStoryError):
            await orchestrator.generate(session)

        assert orchestrator.stage == GenerationStage.IDLE
        assert orchestrator.synthesizer.panel_calls == []

    @pytest.mark.asyncio
    async def test_stage_sequence(self, session, aria):
        """Test the stages run in order and two candidates are produced."""
        _write(session, "Aria wakes", "Aria stands")
        session.scenes.toggle_assignment(session.scenes[0].scene_id, aria.id, EntityKind.CHARACTER)
        stages = []
        orchestrator = _orchestrator(stages=stages)

        result = await orchestrator.generate(session)

        assert stages == [
            GenerationStage.VALIDATING_STORY,
            GenerationStage.GATHERING_REFERENCES,
            GenerationStage.COMPILING,
            GenerationStage.SYNTHESIZING,
            GenerationStage.AWAITING_SELECTION,
        ]
        assert len(result.candidates) == 2
        assert result.aspect_ratio == "2:3"
        assert [r.entity_id for r in result.reference_manifest] == [aria.id]
        assert len(orchestrator.synthesizer.panel_calls[0]["references"]) == 1

    @pytest.mark.asyncio
    async def test_locked_seed_reused(self, session):
        """Test a locked seed is sent unchanged on every generation."""
        _write(session, "a", "b")
        session.seed.lock()
        orchestrator = _orchestrator()

        first = await orchestrator.generate(session)
        second = await orchestrator.generate(session)

        assert first.seed == second.seed == session.seed.value
        assert first.prompt == second.prompt

    @pytest.mark.asyncio
    async def test_auto_write_applies_continuation(self, session, aria):
        """Test auto-write fills the scenes before the story check."""
        continuator = FakeContinuator([
            PanelContinuation(description="Aria climbs the tower", camera_shot=CAMERA_SHOTS[2], character_names=["Aria"]),
            PanelContinuation(description="The wind howls", camera_shot=CAMERA_SHOTS[0]),
        ])
        stages = []
        orchestrator = _orchestrator(continuator=continuator, stages=stages)

        result = await orchestrator.generate(session, auto_write=True)

        assert stages[0] == GenerationStage.CONTINUING
        assert session.scenes[0].description == "Aria climbs the tower"
        assert session.scenes[0].character_ids == [aria.id]
        assert "Aria climbs the tower" in result.story_text

    @pytest.mark.asyncio
    async def test_missing_reference_uses_placeholder(self, session, aria, bram, registry):
        """Test one unreadable reference is replaced and reported, keeping indices aligned."""
        registry.update_entity(bram.model_copy(update={"reference_image_url": "/nonexistent/bram.png"}))
        _write(session, "duel", "aftermath")
        session.scenes.toggle_assignment(session.scenes[0].scene_id, aria.id, EntityKind.CHARACTER)
        session.scenes.toggle_assignment(session.scenes[0].scene_id, bram.id, EntityKind.CHARACTER)
        orchestrator = _orchestrator()

        result = await orchestrator.generate(session)

        assert result.missing_references == [bram.id]
        references = orchestrator.synthesizer.panel_calls[0]["references"]
        assert len(references) == 2
        assert is_placeholder(f"data:{references[1].mime_type};base64,{references[1].data}")

    @pytest.mark.asyncio
    async def test_all_references_missing(self, session, aria, registry):
        """Test generation fails when no reference could be loaded."""
        registry.update_entity(aria.model_copy(update={"reference_image_url": "/nonexistent/aria.png"}))
        _write(session, "a", "b")
        session.scenes.toggle_assignment(session.scenes[0].scene_id, aria.id, EntityKind.CHARACTER)
        orchestrator = _orchestrator()

        with pytest.raises(ReferenceGatheringError):
            await orchestrator.generate(session)
        assert orchestrator.stage == GenerationStage.IDLE

    @pytest.mark.asyncio
    async def test_webtoon_ratio(self, webtoon_project):
        """Test webtoon projects send no aspect ratio and never spread."""
        session = AuthoringSession(webtoon_project)
        session.page_mode = PageMode.SPREAD
        _write(session, "a", "b")

        orchestrator = _orchestrator()
        result = await orchestrator.generate(session)

        assert result.aspect_ratio is None
        assert all(call["aspect_ratio"] is None for call in orchestrator.synthesizer.panel_calls)
        assert result.page_mode == PageMode.SINGLE


class TestCommit:
    """Choosing a candidate."""

    @pytest.mark.asyncio
    async def test_commit_appends_page(self, session):
        """Test committing adds a numbered page and resets authoring."""
        _write(session, "Aria wakes", "Aria stands")
        orchestrator = _orchestrator()
        result = await orchestrator.generate(session)

        page = orchestrator.commit(session, result, 1)

        assert page.page_number == 1
        assert page.image_url == result.candidates[1]
        assert page.user_story_text == result.story_text
        assert page.final_generation_prompt == result.prompt
        assert session.scenes.is_story_empty()
        assert orchestrator.stage == GenerationStage.COMMITTED

    @pytest.mark.asyncio
    async def test_abort(self, session):
        """Test declining both candidates commits nothing."""
        _write(session, "a", "b")
        orchestrator = _orchestrator()
        result = await orchestrator.generate(session)

        assert orchestrator.commit(session, result, None) is None
        assert session.pages == []
        assert orchestrator.stage == GenerationStage.IDLE
        assert not session.scenes.is_story_empty()

    @pytest.mark.asyncio
    async def test_stale_result_refused(self, session):
        """Test a result from a superseded generation cannot be committed."""
        _write(session, "a", "b")
        orchestrator = _orchestrator()
        stale = await orchestrator.generate(session)
        await orchestrator.generate(session)

        with pytest.raises(StaleGenerationError):
            orchestrator.commit(session, stale, 0)
        assert session.pages == []

    @pytest.mark.asyncio
    async def test_bad_choice(self, session):
        """Test an out-of-range choice raises."""
        _write(session, "a", "b")
        orchestrator = _orchestrator()
        result = await orchestrator.generate(session)

        with pytest.raises(SessionError):
            orchestrator.commit(session, result, 2)

    @pytest.mark.asyncio
    async def test_result_committed_once(self, session):
        """Test the same result cannot be committed twice."""
        _write(session, "a", "b")
        orchestrator = _orchestrator()
        result = await orchestrator.generate(session)
        orchestrator.commit(session, result, 0)

        with pytest.raises(SessionError):
            orchestrator.commit(session, result, 1)
        assert [p.page_number for p in session.pages] == [1]
        assert orchestrator.stage == GenerationStage.COMMITTED

    @pytest.mark.asyncio
    async def test_no_commit_after_abort(self, session):
        """Test an aborted result stays discarded."""
        _write(session, "a", "b")
        orchestrator = _orchestrator()
        result = await orchestrator.generate(session)
        orchestrator.commit(session, result, None)

        with pytest.raises(SessionError):
            orchestrator.commit(session, result, 0)
        with pytest.raises(SessionError):
            orchestrator.commit(session, result, None)
        assert session.pages == []


class TestCast:
    """Creating characters and assets."""

    @pytest.mark.asyncio
    async def test_create_with_generated_reference(self, session):
        """Test a reference is generated when none is uploaded."""
        orchestrator = _orchestrator()

        entity = await orchestrator.create_entity(session, EntityKind.CHARACTER, "Cora", "young mage")

        assert session.registry.get(entity.id) == entity
        assert "Cora" in orchestrator.synthesizer.reference_calls[0]
        assert not is_placeholder(entity.reference_image_url)

    @pytest.mark.asyncio
    async def test_create_falls_back_to_placeholder(self, session):
        """Test a failed reference generation still registers the entity."""
        orchestrator = _orchestrator(synthesizer=FakeSynthesizer(fail_all=True))

        entity = await orchestrator.create_entity(session, EntityKind.ASSET, "Lantern", "brass lantern")

        assert entity.kind == EntityKind.ASSET
        assert is_placeholder(entity.reference_image_url)
        assert len(orchestrator.synthesizer.reference_calls) == 1

    @pytest.mark.asyncio
    async def test_create_with_upload(self, session, image_url):
        """Test an uploaded image skips generation."""
        orchestrator = _orchestrator()
        entity = await orchestrator.create_entity(session, EntityKind.CHARACTER, "Dax", "rogue", image_url)

        assert entity.reference_image_url == image_url
        assert orchestrator.synthesizer.reference_calls == []

    @pytest.mark.asyncio
    async def test_create_requires_name(self, session):
        """Test blank names are rejected."""
        with pytest.raises(SessionError):
            await _orchestrator().create_entity(session, EntityKind.CHARACTER, " ", "rogue")


class TestPageEdits:
    """Editing and extending committed pages."""

    async def _committed(self, session, orchestrator):
        _write(session, "a", "b")
        result = await orchestrator.generate(session)
        return orchestrator.commit(session, result, 0)

    @pytest.mark.asyncio
    async def test_edit_replaces_image(self, session):
        """Test a successful edit replaces the page image."""
        orchestrator = _orchestrator()
        page = await self._committed(session, orchestrator)
        mask = parse_data_url(make_image_url("white"))

        assert await orchestrator.edit_page(session, page.page_id, "remove the lamp", mask) is True
        assert session.get_page(page.page_id).image_url == make_image_url("yellow")
        assert "inpainting" in orchestrator.synthesizer.edit_calls[0]

    @pytest.mark.asyncio
    async def test_failed_edit_keeps_page(self, session):
        """Test a failed edit leaves the page unchanged."""
        orchestrator = _orchestrator()
        page = await self._committed(session, orchestrator)
        original = page.image_url
        orchestrator.synthesizer.fail_all = True

        ok = await orchestrator.edit_page(session, page.page_id, "make it night", parse_data_url(make_image_url()))

        assert ok is False
        assert session.get_page(page.page_id).image_url == original

    @pytest.mark.asyncio
    async def test_extend_to_spread(self, session):
        """Test extending a page can change its mode."""
        orchestrator = _orchestrator()
        page = await self._committed(session, orchestrator)
        canvas = parse_data_url(make_image_url(size=(16, 8)))
        mask = parse_data_url(make_image_url("white", size=(16, 8)))

        assert await orchestrator.extend_page(session, page.page_id, canvas, mask, PageMode.SPREAD) is True
        assert session.get_page(page.page_id).mode == PageMode.SPREAD
        assert orchestrator.synthesizer.extend_calls == [page.user_story_text]
