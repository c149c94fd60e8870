import asyncio
import logging
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field

from compiler import (
    aspect_ratio_for,
    build_edit_prompt,
    build_manifest,
    build_reference_prompt,
    compile_prompt,
    compile_story_text,
)
from config import Settings, load_settings, setup_logging
from continuity import ContinuityEngine
from errors import EmptyStoryError, ReferenceGatheringError, SessionError, StaleGenerationError
from models import Entity, EntityKind, EntityRef, Page, PageMode, ReferenceImage
from registry import EntityRegistry
from retry import DEFAULT_POLICY, RetryPolicy, with_fallback
from services import (
    GeminiImageSynthesizer,
    GeminiTextContinuator,
    ImageSynthesizer,
    TextContinuator,
    fallback_reference,
    generate_panels,
)
from session import AuthoringSession
from utils import is_placeholder, load_reference, parse_data_url, placeholder_image

logger = logging.getLogger(__name__)


class GenerationStage(str, Enum):
    IDLE = "idle"
    CONTINUING = "continuing"
    VALIDATING_STORY = "validating_story"
    GATHERING_REFERENCES = "gathering_references"
    COMPILING = "compiling"
    SYNTHESIZING = "synthesizing"
    AWAITING_SELECTION = "awaiting_selection"
    COMMITTED = "committed"


class GenerationResult(BaseModel):
    epoch: int
    seed: int
    prompt: str
    story_text: str
    aspect_ratio: str | None = None
    page_mode: PageMode
    reference_manifest: list[EntityRef] = Field(default_factory=list)
    missing_references: list[str] = Field(default_factory=list)
    candidates: list[str] = Field(default_factory=list)


class GenerationOrchestrator:
    """
    Drives one page generation from (optional) AI writing to a committed page.

    Stages: IDLE -> [CONTINUING] -> VALIDATING_STORY -> GATHERING_REFERENCES
    -> COMPILING -> SYNTHESIZING -> AWAITING_SELECTION -> COMMITTED. Any
    failure returns the orchestrator to IDLE.
    """

    def __init__(
        self,
        synthesizer: ImageSynthesizer,
        continuator: TextContinuator,
        policy: RetryPolicy = DEFAULT_POLICY,
        on_stage: Callable[[GenerationStage], None] | None = None,
    ):
        self.synthesizer = synthesizer
        self.continuity = ContinuityEngine(continuator)
        self.policy = policy
        self.on_stage = on_stage
        self.stage = GenerationStage.IDLE
        self.pending_epoch: int | None = None

    def _enter(self, stage: GenerationStage) -> None:
        self.stage = stage
        logger.debug(f"Generation stage: {stage.value}")
        if self.on_stage:
            self.on_stage(stage)

    def _check_current(self, session: AuthoringSession, epoch: int) -> None:
        if not session.is_current(epoch):
            raise StaleGenerationError(epoch, session.generation_epoch)

    async def _context_image(self, page: Page | None) -> ReferenceImage | None:
        if page is None:
            return None
        try:
            return await load_reference(page.image_url)
        except Exception as e:
            logger.warning(f"Context page {page.page_number} image unavailable, continuing from text only: {e}")
            return None

    async def _continue(self, session: AuthoringSession, epoch: int) -> None:
        self._enter(GenerationStage.CONTINUING)
        context_image = await self._context_image(session.continuation_context)
        updates = await self.continuity.continue_story(
            session.previous_story(),
            session.scenes.snapshot(),
            session.registry,
            session.layout,
            list(session.selected_character_ids),
            list(session.selected_asset_ids),
            session.page_outline,
            context_image,
        )
        self._check_current(session, epoch)
        session.scenes.apply_updates(updates)
        session.clear_continuation_context()

    async def gather_references(
        self, manifest: list[EntityRef], registry: EntityRegistry
    ) -> tuple[list[ReferenceImage], list[str]]:
        """
        Load every manifest entity's reference image concurrently.

        A failed load is replaced by a marked placeholder so the attachment
        order keeps matching the reference numbers in the prompt. The ids of
        failed entities are returned alongside the images.
        """
        results = await asyncio.gather(
            *[load_reference(registry.require(ref.entity_id).reference_image_url) for ref in manifest],
            return_exceptions=True,
        )
        references, missing = [], []
        for ref, result in zip(manifest, results):
            if isinstance(result, Exception):
                logger.error(f"Reference image for '{ref.name}' ({ref.entity_id}) unavailable: {result}")
                missing.append(ref.entity_id)
                references.append(parse_data_url(placeholder_image(512, 512, "Reference Missing")))
            else:
                references.append(result)
        if manifest and len(missing) == len(manifest):
            raise ReferenceGatheringError("No reference image could be loaded", {"entity_ids": missing})
        return references, missing

    async def generate(self, session: AuthoringSession, auto_write: bool = False) -> GenerationResult:
        epoch = session.begin_generation()
        seed = session.seed.next()
        self.pending_epoch = None
        try:
            if auto_write or session.continuation_context is not None:
                await self._continue(session, epoch)

            self._enter(GenerationStage.VALIDATING_STORY)
            if session.scenes.is_story_empty():
                raise EmptyStoryError()
            scenes = session.scenes.snapshot()

            self._enter(GenerationStage.GATHERING_REFERENCES)
            manifest = build_manifest(scenes, session.registry)
            references, missing = await self.gather_references(manifest, session.registry)

            self._enter(GenerationStage.COMPILING)
            page_mode = session.effective_page_mode()
            compiled = compile_prompt(
                scenes, session.registry, session.project, page_mode, session.color_mode, session.layout
            )
            aspect_ratio = aspect_ratio_for(session.project.format, page_mode)

            self._enter(GenerationStage.SYNTHESIZING)
            candidates = await generate_panels(
                self.synthesizer, compiled.prompt, references, aspect_ratio, seed, self.policy
            )
            self._check_current(session, epoch)
        except Exception:
            self._enter(GenerationStage.IDLE)
            raise

        self.pending_epoch = epoch
        self._enter(GenerationStage.AWAITING_SELECTION)
        return GenerationResult(
            epoch=epoch,
            seed=seed,
            prompt=compiled.prompt,
            story_text=compile_story_text(scenes),
            aspect_ratio=aspect_ratio,
            page_mode=page_mode,
            reference_manifest=compiled.reference_manifest,
            missing_references=missing,
            candidates=candidates,
        )

    def commit(self, session: AuthoringSession, result: GenerationResult, choice: int | None) -> Page | None:
        """
        Append the chosen candidate as a new page. `choice=None` discards both.

        A result is settled exactly once: after a commit or an abort it can no
        longer be committed.
        """
        if self.stage != GenerationStage.AWAITING_SELECTION or self.pending_epoch is None:
            raise SessionError("No generation is awaiting selection", {"stage": self.stage.value})
        self._check_current(session, result.epoch)
        if result.epoch != self.pending_epoch:
            raise SessionError("Result does not belong to the pending generation", {"epoch": result.epoch})
        if choice is None:
            logger.info("No candidate selected; nothing committed")
            self.pending_epoch = None
            self._enter(GenerationStage.IDLE)
            return None
        if not 0 <= choice < len(result.candidates):
            raise SessionError(f"No candidate at index {choice}", {"choice": choice})

        self.pending_epoch = None
        image_url = result.candidates[choice]
        if is_placeholder(image_url):
            logger.warning("Committing a placeholder candidate")
        page = session.add_page(Page(
            page_number=session.next_page_number(),
            image_url=image_url,
            user_story_text=result.story_text,
            final_generation_prompt=result.prompt,
            mode=result.page_mode,
        ))
        session.reset_authoring()
        self._enter(GenerationStage.COMMITTED)
        logger.info(f"Committed page {page.page_number} ({page.page_id})")
        return page

    # --- cast ---

    async def create_entity(
        self,
        session: AuthoringSession,
        kind: EntityKind,
        name: str,
        description: str,
        image_url: str | None = None,
    ) -> Entity:
        """Register a character or asset, generating reference art when none was uploaded."""
        if not name.strip() or not description.strip():
            raise SessionError("Name and description are required")
        if image_url is None:
            prompt = build_reference_prompt(session.project, kind, name, description)
            image_url = await with_fallback(
                lambda: self.synthesizer.generate_reference(prompt),
                fallback_reference,
                RetryPolicy(max_attempts=1),
                label=f"reference for '{name}'",
            )
        factory = Entity.character if kind == EntityKind.CHARACTER else Entity.asset
        return session.add_entity(factory(name=name, core_prompt=description, reference_image_url=image_url))

    # --- post-hoc page edits ---

    async def edit_page(
        self,
        session: AuthoringSession,
        page_id: str,
        instruction: str,
        mask: ReferenceImage,
        reference: ReferenceImage | None = None,
    ) -> bool:
        page = session.get_page(page_id)
        prompt = build_edit_prompt(instruction, reference is not None)
        try:
            original = await load_reference(page.image_url)
            image_url = await self.synthesizer.edit(prompt, original, mask, reference)
        except Exception as e:
            logger.error(f"Error editing page {page.page_number}: {e}")
            return False
        session.replace_page_image(page_id, image_url)
        return True

    async def extend_page(
        self,
        session: AuthoringSession,
        page_id: str,
        canvas: ReferenceImage,
        mask: ReferenceImage,
        mode: PageMode | None = None,
    ) -> bool:
        page = session.get_page(page_id)
        try:
            image_url = await self.synthesizer.extend(page.user_story_text, canvas, mask)
        except Exception as e:
            logger.error(f"Failed to extend page {page.page_number}: {e}")
            return False
        session.replace_page_image(page_id, image_url, mode)
        return True


def build_orchestrator(
    settings: Settings | None = None,
    on_stage: Callable[[GenerationStage], None] | None = None,
) -> GenerationOrchestrator:
    """Gemini-backed orchestrator, with console logging configured from settings."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    logger.info(f"Using text model {settings.text_model}, image model {settings.image_model}")
    return GenerationOrchestrator(
        GeminiImageSynthesizer(settings),
        GeminiTextContinuator(settings),
        on_stage=on_stage,
    )
