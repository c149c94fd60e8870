"""
Prompt compiler.

Builds the page generation prompt and its reference image manifest from the
current authoring state. Everything here is pure: the same inputs always give
a byte-identical prompt, which is what makes seed-locked regeneration
reproducible.
"""

import re

from models import (
    ColorMode,
    ComicFormat,
    CompiledPrompt,
    Entity,
    EntityKind,
    EntityRef,
    PageMode,
    Project,
    ResolvedLayout,
    Scene,
)
from prompts import (
    aspect_single,
    aspect_spread,
    aspect_webtoon,
    character_sheet_empty,
    character_sheet_entry,
    character_sheet_footer,
    character_sheet_header,
    color_bw,
    color_full,
    edit_prompt,
    edit_reference_note,
    edit_remove_instruction,
    edit_remove_keywords,
    extend_prompt,
    main_single,
    main_spread,
    main_webtoon,
    page_prompt,
    panel_appearance,
    panel_appearance_item,
    panel_line,
    reference_prompt,
    story_line,
)
from registry import EntityRegistry

TYPE_LABELS = {EntityKind.CHARACTER: "角色", EntityKind.ASSET: "物品"}

_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _is_spread(project: Project, page_mode: PageMode) -> bool:
    return project.format == ComicFormat.PAGE and page_mode == PageMode.SPREAD


def aspect_instruction(project: Project, page_mode: PageMode) -> str:
    if project.format == ComicFormat.WEBTOON:
        return aspect_webtoon
    return aspect_spread if _is_spread(project, page_mode) else aspect_single


def aspect_ratio_for(format: ComicFormat, page_mode: PageMode) -> str | None:
    """Ratio handed to the image backend. Webtoon strips have no fixed height, so none is sent."""
    if format == ComicFormat.WEBTOON:
        return None
    return "4:3" if page_mode == PageMode.SPREAD else "2:3"


def main_instruction(project: Project, page_mode: PageMode) -> str:
    if project.format == ComicFormat.WEBTOON:
        return main_webtoon
    return main_spread if _is_spread(project, page_mode) else main_single


def color_instruction(color_mode: ColorMode) -> str:
    return color_bw if color_mode == ColorMode.BW else color_full


def appearing_entities(scenes: list[Scene], registry: EntityRegistry) -> list[Entity]:
    """Entities assigned to at least one scene: characters first, then assets, in registry order."""
    character_ids = {i for s in scenes for i in s.character_ids}
    asset_ids = {i for s in scenes for i in s.asset_ids}
    return [
        *[c for c in registry.characters if c.id in character_ids],
        *[a for a in registry.assets if a.id in asset_ids],
    ]


def build_manifest(scenes: list[Scene], registry: EntityRegistry) -> list[EntityRef]:
    return [
        EntityRef(index=i, kind=e.kind, entity_id=e.id, name=e.name)
        for i, e in enumerate(appearing_entities(scenes, registry), start=1)
    ]


def build_character_sheet(manifest: list[EntityRef], registry: EntityRegistry) -> str:
    if not manifest:
        return character_sheet_empty
    sheet = character_sheet_header
    for ref in manifest:
        sheet += character_sheet_entry.format(
            index=ref.index,
            type_label=TYPE_LABELS[ref.kind],
            name=ref.name,
            core_prompt=registry.get(ref.entity_id).core_prompt,
        )
    return sheet + character_sheet_footer


def _appearance_label(has_characters: bool, has_assets: bool) -> str:
    if has_characters and has_assets:
        return "角色/道具"
    return "角色" if has_characters else "道具"


def build_panel_line(index: int, scene: Scene, registry: EntityRegistry, ref_numbers: dict[str, int]) -> str:
    # Stale ids (deleted entities, or entities never in the manifest) are skipped.
    characters = [registry.get(i) for i in scene.character_ids]
    characters = [c for c in characters if c is not None and c.kind == EntityKind.CHARACTER and c.id in ref_numbers]
    assets = [registry.get(i) for i in scene.asset_ids]
    assets = [a for a in assets if a is not None and a.kind == EntityKind.ASSET and a.id in ref_numbers]

    appearance = ""
    if characters or assets:
        items = ", ".join(
            panel_appearance_item.format(name=e.name, index=ref_numbers[e.id])
            for e in [*characters, *assets]
        )
        appearance = panel_appearance.format(label=_appearance_label(bool(characters), bool(assets)), items=items)

    return panel_line.format(
        index=index,
        camera_shot=scene.camera_shot,
        description=scene.description,
        appearance=appearance,
    )


def compile_prompt(
    scenes: list[Scene],
    registry: EntityRegistry,
    project: Project,
    page_mode: PageMode,
    color_mode: ColorMode,
    layout: ResolvedLayout,
) -> CompiledPrompt:
    scenes = list(scenes)
    manifest = build_manifest(scenes, registry)
    ref_numbers = {ref.entity_id: ref.index for ref in manifest}

    panel_contents = "\n".join(
        build_panel_line(i, scene, registry, ref_numbers) for i, scene in enumerate(scenes, start=1)
    )
    prompt = page_prompt.format(
        aspect_ratio_instruction=aspect_instruction(project, page_mode),
        character_sheet=build_character_sheet(manifest, registry),
        main_instruction=main_instruction(project, page_mode),
        style_prompt=project.style_prompt,
        color_instruction=color_instruction(color_mode),
        panel_count=layout.panel_count,
        layout_description=layout.description,
        panel_contents=panel_contents,
    )
    return CompiledPrompt(prompt=collapse_whitespace(prompt), reference_manifest=manifest)


def compile_story_text(scenes: list[Scene]) -> str:
    return "\n\n".join(
        story_line.format(index=i, description=scene.description) for i, scene in enumerate(scenes, start=1)
    )


def build_reference_prompt(project: Project, kind: EntityKind, name: str, description: str) -> str:
    type_name = "角色" if kind == EntityKind.CHARACTER else "道具"
    return reference_prompt.format(
        style_prompt=project.style_prompt,
        type_name=type_name,
        name=name,
        description=description,
    )


def is_remove_request(instruction: str) -> bool:
    lowered = instruction.lower()
    return any(kw in lowered for kw in edit_remove_keywords)


def build_edit_prompt(instruction: str, has_reference: bool = False) -> str:
    user_instruction = instruction
    if is_remove_request(instruction):
        user_instruction = collapse_whitespace(edit_remove_instruction.format(instruction=instruction))
    return collapse_whitespace(edit_prompt.format(
        reference_note=edit_reference_note if has_reference else "",
        instruction=user_instruction,
    ))


def build_extend_prompt(story_context: str) -> str:
    return collapse_whitespace(extend_prompt.format(story_context=story_context))
