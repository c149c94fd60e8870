"""
Continuity engine.

Asks the text backend to write the next page, panel by panel, and reconciles
the answer back into scene updates. The backend call is non-deterministic;
everything after it (name resolution, pool restriction, camera shot checks,
short-response and failure fallbacks) is deterministic for a given raw
response.
"""

import logging

from models import (
    ContinuationRequest,
    Entity,
    PanelContinuation,
    ReferenceImage,
    ResolvedLayout,
    Scene,
    SceneUpdate,
)
from prompts import (
    continuation_cast_none,
    continuation_cast_open,
    continuation_cast_restricted,
    continuation_context_image,
    continuation_fallback,
    continuation_outline,
    continuation_preset,
    continuation_prompt,
    continuation_relationship_fact,
    continuation_relationships,
)
from registry import EntityRegistry
from scenes import CAMERA_SHOTS, DEFAULT_CAMERA_SHOT

logger = logging.getLogger(__name__)

_NAME_QUOTES = "\"'“”‘’「」"


def character_pool(registry: EntityRegistry, selected_character_ids: list[str]) -> tuple[list[Entity], bool]:
    """
    Characters allowed to appear in continued panels.

    A non-empty selection is a strict restriction (returned flag True). With no
    selection every registered character is eligible; an empty registry means
    no character may appear.
    """
    if selected_character_ids:
        selected = set(selected_character_ids)
        return [c for c in registry.characters if c.id in selected], True
    return registry.characters, False


def panel_presets(scenes: list[Scene], registry: EntityRegistry) -> dict[int, list[str]]:
    """Panels whose cast the user already fixed, keyed by 0-based panel index."""
    known = {c.id for c in registry.characters}
    presets = {}
    for i, scene in enumerate(scenes):
        ids = [cid for cid in scene.character_ids if cid in known]
        if ids:
            presets[i] = ids
    return presets


def relationship_facts(registry: EntityRegistry, selected_ids: set[str]) -> list[str]:
    facts = []
    for r in registry.relationships:
        if r.entity1_id in selected_ids and r.entity2_id in selected_ids:
            subject, object_ = registry.name_of(r.entity1_id), registry.name_of(r.entity2_id)
            if subject is None or object_ is None:
                continue
            facts.append(continuation_relationship_fact.format(subject=subject, description=r.description, object=object_))
    return facts


def build_request(
    previous_story: str,
    scenes: list[Scene],
    registry: EntityRegistry,
    layout: ResolvedLayout,
    selected_character_ids: list[str],
    selected_asset_ids: list[str],
    page_outline: str = "",
    has_context_image: bool = False,
) -> ContinuationRequest:
    pool, restricted = character_pool(registry, selected_character_ids)
    presets = panel_presets(scenes, registry)
    return ContinuationRequest(
        previous_story=previous_story,
        panel_count=layout.panel_count,
        layout_description=layout.description,
        camera_shots=list(CAMERA_SHOTS),
        pool_names=[c.name for c in pool],
        restrict_to_pool=restricted,
        panel_presets={i: [registry.name_of(cid) for cid in ids] for i, ids in presets.items()},
        relationship_facts=relationship_facts(registry, {*selected_character_ids, *selected_asset_ids}),
        page_outline=page_outline.strip(),
        has_context_image=has_context_image,
    )


def build_continuation_prompt(request: ContinuationRequest) -> str:
    if request.pool_names:
        template = continuation_cast_restricted if request.restrict_to_pool else continuation_cast_open
        cast_note = template.format(names="、".join(f"“{n}”" for n in request.pool_names))
    else:
        cast_note = continuation_cast_none

    relationship_note = ""
    if request.relationship_facts:
        relationship_note = continuation_relationships.format(facts="；".join(request.relationship_facts))

    preset_note = "".join(
        continuation_preset.format(index=i + 1, names="、".join(f"“{n}”" for n in names))
        for i, names in sorted(request.panel_presets.items())
    )

    return continuation_prompt.format(
        previous_story=request.previous_story,
        layout_description=request.layout_description,
        panel_count=request.panel_count,
        context_image_note=continuation_context_image if request.has_context_image else "",
        outline_note=continuation_outline.format(outline=request.page_outline) if request.page_outline else "",
        cast_note=cast_note,
        relationship_note=relationship_note,
        preset_note=preset_note,
        camera_shots=", ".join(request.camera_shots),
    ).strip()


def fallback_panels(panel_count: int) -> list[PanelContinuation]:
    return [
        PanelContinuation(description=continuation_fallback if i == 0 else "", camera_shot=DEFAULT_CAMERA_SHOT)
        for i in range(panel_count)
    ]


def _resolve_names(names: list[str], registry: EntityRegistry, allowed: set[str]) -> list[str]:
    ids = []
    for name in names:
        entity = registry.find_by_name(name.strip().strip(_NAME_QUOTES))
        # Unknown names and characters outside the pool are dropped, not errors.
        if entity is not None and entity.id in allowed and entity.id not in ids:
            ids.append(entity.id)
    return ids


def reconcile(
    raw: list[PanelContinuation],
    scenes: list[Scene],
    registry: EntityRegistry,
    pool_ids: set[str],
    presets: dict[int, list[str]],
) -> list[SceneUpdate]:
    if len(raw) < len(scenes):
        logger.warning(f"Continuation returned {len(raw)} panels for {len(scenes)} requested; merging into panel 1")
        combined = " ".join(d.description for d in raw).strip()
        return [
            SceneUpdate(
                description=combined if i == 0 else "",
                camera_shot=scene.camera_shot,
                character_ids=list(scene.character_ids),
            )
            for i, scene in enumerate(scenes)
        ]

    updates = []
    for i, scene in enumerate(scenes):
        detail = raw[i]
        if detail.camera_shot in CAMERA_SHOTS:
            shot = detail.camera_shot
        else:
            logger.warning(f"Panel {i + 1}: camera shot '{detail.camera_shot}' not in vocabulary, keeping '{scene.camera_shot}'")
            shot = scene.camera_shot
        if i in presets:
            character_ids = list(presets[i])
        else:
            character_ids = _resolve_names(detail.character_names, registry, pool_ids)
        updates.append(SceneUpdate(description=detail.description or "", camera_shot=shot, character_ids=character_ids))
    return updates


class ContinuityEngine:
    def __init__(self, continuator):
        self.continuator = continuator

    async def continue_story(
        self,
        previous_story: str,
        scenes: list[Scene],
        registry: EntityRegistry,
        layout: ResolvedLayout,
        selected_character_ids: list[str],
        selected_asset_ids: list[str],
        page_outline: str = "",
        context_image: ReferenceImage | None = None,
    ) -> list[SceneUpdate]:
        """Continue the story for every panel of the current layout. Never raises for backend failures."""
        scenes = list(scenes)
        request = build_request(
            previous_story,
            scenes,
            registry,
            layout,
            selected_character_ids,
            selected_asset_ids,
            page_outline,
            has_context_image=context_image is not None,
        )
        prompt = build_continuation_prompt(request)
        logger.debug(f"Continuation prompt: {prompt}")

        try:
            raw = await self.continuator.continue_story(prompt, request, context_image)
            raw = [d if isinstance(d, PanelContinuation) else PanelContinuation.model_validate(d) for d in raw]
        except Exception as e:
            logger.error(f"Error generating story continuation: {e}")
            raw = fallback_panels(len(scenes))

        pool, _ = character_pool(registry, selected_character_ids)
        return reconcile(raw, scenes, registry, {c.id for c in pool}, panel_presets(scenes, registry))
