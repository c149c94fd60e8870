import logging

from models import EntityKind, Scene, SceneUpdate
from errors import SceneError

logger = logging.getLogger(__name__)

# Grouped by distance, angle, then narrative / stylistic use.
CAMERA_SHOTS = [
    "建场镜头",
    "全景",
    "中远景 (牛仔镜头)",
    "中景",
    "特写镜头",
    "大特写",
    "插入镜头 (特写道具)",

    "主观视角",
    "过肩镜头",
    "仰拍",
    "虫瞰视角 (极端仰拍)",
    "俯拍",
    "鸟瞰视角 (极端俯拍)",
    "斜角镜头 (荷兰角)",

    "反应镜头",
    "动态动作分镜",
    "序列镜头 (分解动作)",
    "突破画框",
    "无声分镜",
]

DEFAULT_CAMERA_SHOT = CAMERA_SHOTS[0]

EDITABLE_FIELDS = ("description", "camera_shot")


def blank_scene() -> Scene:
    return Scene(camera_shot=DEFAULT_CAMERA_SHOT)


class SceneSet:
    """Ordered per-panel authoring state for the page being built."""

    def __init__(self, panel_count: int = 0):
        self.scenes: list[Scene] = [blank_scene() for _ in range(panel_count)]

    def __len__(self) -> int:
        return len(self.scenes)

    def __iter__(self):
        return iter(self.scenes)

    def __getitem__(self, index: int) -> Scene:
        return self.scenes[index]

    def get(self, scene_id: str) -> Scene:
        for scene in self.scenes:
            if scene.scene_id == scene_id:
                return scene
        raise SceneError(f"Scene not found: '{scene_id}'", {"scene_id": scene_id})

    def resize(self, panel_count: int) -> None:
        """Keep scenes[:panel_count], pad with blank scenes."""
        if panel_count < 0:
            raise SceneError("Panel count cannot be negative", {"panel_count": panel_count})
        kept = self.scenes[:panel_count]
        self.scenes = kept + [blank_scene() for _ in range(panel_count - len(kept))]

    def reset(self, panel_count: int) -> None:
        self.scenes = [blank_scene() for _ in range(panel_count)]

    def set_field(self, scene_id: str, field: str, value: str) -> None:
        if field not in EDITABLE_FIELDS:
            raise SceneError(f"Field '{field}' is not editable", {"field": field})
        if field == "camera_shot" and value not in CAMERA_SHOTS:
            raise SceneError(f"Unknown camera shot: '{value}'", {"camera_shot": value})
        setattr(self.get(scene_id), field, value)

    def toggle_assignment(self, scene_id: str, entity_id: str, kind: EntityKind) -> bool:
        """Add or remove an entity from a scene. Returns True if now assigned."""
        ids = self.get(scene_id).ids_for(kind)
        if entity_id in ids:
            ids.remove(entity_id)
            return False
        ids.append(entity_id)
        return True

    def purge_entity(self, entity_id: str) -> int:
        """Remove an id from every assignment list. Returns how many scenes changed."""
        touched = 0
        for scene in self.scenes:
            if entity_id in scene.character_ids or entity_id in scene.asset_ids:
                scene.character_ids = [i for i in scene.character_ids if i != entity_id]
                scene.asset_ids = [i for i in scene.asset_ids if i != entity_id]
                touched += 1
        return touched

    def purge_missing(self, character_ids: set[str], asset_ids: set[str]) -> None:
        for scene in self.scenes:
            scene.character_ids = [i for i in scene.character_ids if i in character_ids]
            scene.asset_ids = [i for i in scene.asset_ids if i in asset_ids]

    def apply_updates(self, updates: list[SceneUpdate]) -> None:
        """Write reconciled continuation results back, panel by panel."""
        if len(updates) != len(self.scenes):
            logger.warning(f"Applying {len(updates)} updates to {len(self.scenes)} scenes")
        for scene, update in zip(self.scenes, updates):
            scene.description = update.description
            scene.camera_shot = update.camera_shot
            scene.character_ids = list(update.character_ids)

    def is_story_empty(self) -> bool:
        return all(not scene.description.strip() for scene in self.scenes)

    def snapshot(self) -> list[Scene]:
        return [scene.model_copy(deep=True) for scene in self.scenes]
