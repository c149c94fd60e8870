import random
import time
import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ComicFormat(str, Enum):
    WEBTOON = "webtoon"
    PAGE = "page"


class DrawingStyle(str, Enum):
    JAPANESE_SHONEN = "japanese shonen manga style, clean lines, high contrast, dynamic action poses"
    AMERICAN_REALISTIC = "american realistic comic book style, detailed illustrations, cinematic lighting"
    CHIBI = "chibi style, cute, large heads, small bodies, vibrant colors"
    INK_WASH = "traditional ink wash painting style, monochrome, minimalist, expressive brushstrokes"


DRAWING_STYLE_NAMES = {
    DrawingStyle.JAPANESE_SHONEN: "日式少年漫画",
    DrawingStyle.AMERICAN_REALISTIC: "美式写实漫画",
    DrawingStyle.CHIBI: "Q版 / 赤壁风格",
    DrawingStyle.INK_WASH: "水墨画风格",
}

COMIC_FORMAT_NAMES = {
    ComicFormat.WEBTOON: "网络漫画 (竖版长条)",
    ComicFormat.PAGE: "标准页漫 (横版)",
}


class PageMode(str, Enum):
    SINGLE = "single"
    SPREAD = "spread"


class ColorMode(str, Enum):
    COLOR = "color"
    BW = "bw"


class EntityKind(str, Enum):
    CHARACTER = "character"
    ASSET = "asset"


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    project_name: str
    format: ComicFormat
    style: DrawingStyle
    style_prompt: str

    @classmethod
    def create(cls, name: str, format: ComicFormat, style: DrawingStyle) -> "Project":
        return cls(
            project_id=new_id("project"),
            project_name=name,
            format=format,
            style=style,
            style_prompt=style.value,
        )


class Entity(BaseModel):
    """A character or an asset. Both share one shape; `kind` tells them apart."""
    kind: EntityKind
    id: str
    name: str
    reference_image_url: str
    core_prompt: str

    @classmethod
    def character(cls, name: str, core_prompt: str, reference_image_url: str, id: str | None = None) -> "Entity":
        return cls(kind=EntityKind.CHARACTER, id=id or new_id("character"), name=name,
                   reference_image_url=reference_image_url, core_prompt=core_prompt)

    @classmethod
    def asset(cls, name: str, core_prompt: str, reference_image_url: str, id: str | None = None) -> "Entity":
        return cls(kind=EntityKind.ASSET, id=id or new_id("asset"), name=name,
                   reference_image_url=reference_image_url, core_prompt=core_prompt)


class Relationship(BaseModel):
    id: str = Field(default_factory=lambda: new_id("relationship"))
    entity1_id: str
    entity2_id: str
    description: str


class Scene(BaseModel):
    scene_id: str = Field(default_factory=lambda: new_id("scene"))
    description: str = ""
    camera_shot: str
    character_ids: list[str] = Field(default_factory=list)
    asset_ids: list[str] = Field(default_factory=list)

    def ids_for(self, kind: EntityKind) -> list[str]:
        return self.character_ids if kind == EntityKind.CHARACTER else self.asset_ids


class LayoutTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    panel_count: int
    description: str


class ResolvedLayout(BaseModel):
    template_id: str
    panel_count: int
    description: str


class Page(BaseModel):
    page_id: str = Field(default_factory=lambda: new_id("page"))
    page_number: int
    image_url: str
    user_story_text: str
    final_generation_prompt: str
    mode: PageMode = PageMode.SINGLE


class SeedControl(BaseModel):
    value: int = Field(default_factory=lambda: random.randint(0, 999999))
    locked: bool = False

    def next(self) -> int:
        """Seed for the next generation: fresh unless the user locked it."""
        if not self.locked:
            self.value = random.randint(0, 999999)
        return self.value

    def lock(self) -> None:
        self.locked = True

    def unlock(self) -> None:
        self.locked = False


class ReferenceImage(BaseModel):
    mime_type: str
    data: str  # base64


class EntityRef(BaseModel):
    index: int
    kind: EntityKind
    entity_id: str
    name: str


class CompiledPrompt(BaseModel):
    prompt: str
    reference_manifest: list[EntityRef]


# Structured continuation schema (sent to the text model as response_schema)

class PanelContinuation(BaseModel):
    description: str
    camera_shot: str
    character_names: list[str] = Field(default_factory=list)


class ContinuationResponse(BaseModel):
    panel_details: list[PanelContinuation]


class ContinuationRequest(BaseModel):
    previous_story: str
    panel_count: int
    layout_description: str
    camera_shots: list[str]
    pool_names: list[str]
    restrict_to_pool: bool
    panel_presets: dict[int, list[str]] = Field(default_factory=dict)  # panel index -> names
    relationship_facts: list[str] = Field(default_factory=list)
    page_outline: str = ""
    has_context_image: bool = False


class SceneUpdate(BaseModel):
    description: str
    camera_shot: str
    character_ids: list[str] = Field(default_factory=list)


class DeletionReport(BaseModel):
    entity_id: str
    name: str
    relationships_removed: int = 0
    pages_mentioning: int = 0
    scenes_touched: int = 0


class ProjectSnapshot(BaseModel):
    project: Project
    characters: list[Entity] = Field(default_factory=list)
    assets: list[Entity] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    timestamp: float = Field(default_factory=time.time)


class ProjectExport(BaseModel):
    project: Project
    version: str
    characters: list[Entity] | None = None
    assets: list[Entity] | None = None
    relationships: list[Relationship] | None = None
    pages: list[Page] | None = None
