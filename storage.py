import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from config import AUTOSAVE_KEY, EXPORT_VERSION
from errors import ProjectImportError
from models import EntityKind, ProjectExport, ProjectSnapshot
from session import AuthoringSession
from utils import clean_string

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, key: str, value: dict[str, Any]) -> None: ...

    def get(self, key: str) -> dict[str, Any] | None: ...

    def delete(self, key: str) -> None: ...


class JsonFileStore:
    """One JSON file per key under a data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{clean_string(key)}.json"

    def put(self, key, value) -> None:
        """Write to a sibling temp file, then swap it over the target."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            with open(tmp, 'w', encoding='utf-8') as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        tmp.replace(path)

    def get(self, key):
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def delete(self, key) -> None:
        self._path(key).unlink(missing_ok=True)


class AutosaveService:
    def __init__(self, store: BlobStore):
        self.store = store

    def save(self, session: AuthoringSession) -> None:
        self.store.put(AUTOSAVE_KEY, session.snapshot().model_dump(mode="json"))
        logger.debug(f"Autosaved project {session.project.project_id}")

    def load(self) -> ProjectSnapshot | None:
        data = self.store.get(AUTOSAVE_KEY)
        if not data or not data.get("project"):
            return None
        return ProjectSnapshot.model_validate(data)

    def has_backup(self) -> bool:
        try:
            return self.load() is not None
        except (OSError, ValueError) as e:
            logger.error(f"Failed to check autosave backup: {e}")
            return False

    def clear(self) -> None:
        self.store.delete(AUTOSAVE_KEY)


def export_project(
    session: AuthoringSession,
    include_characters: bool = True,
    include_assets: bool = True,
    include_relationships: bool = True,
    include_pages: bool = True,
) -> str:
    document = ProjectExport(
        project=session.project,
        version=EXPORT_VERSION,
        characters=session.registry.characters if include_characters else None,
        assets=session.registry.assets if include_assets else None,
        relationships=session.registry.relationships if include_relationships else None,
        pages=list(session.pages) if include_pages else None,
    )
    return document.model_dump_json(indent=2, exclude_none=True)


def _check_entities(snapshot: ProjectSnapshot) -> None:
    seen = set()
    for kind, entities in ((EntityKind.CHARACTER, snapshot.characters), (EntityKind.ASSET, snapshot.assets)):
        for entity in entities:
            if entity.kind != kind:
                raise ProjectImportError(
                    f"'{entity.name}' is listed as a {kind.value} but is a {entity.kind.value}",
                    {"entity_id": entity.id},
                )
            if entity.id in seen:
                raise ProjectImportError(f"Duplicate entity id: {entity.id}", {"entity_id": entity.id})
            seen.add(entity.id)


def import_project(text: str) -> ProjectSnapshot:
    """Parse an exported project document. Only `project` is required."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProjectImportError("Project file is not valid JSON", {"error": str(e)})
    if not isinstance(data, dict) or not data.get("project"):
        raise ProjectImportError("Invalid project file format: 'project' data is missing.")
    try:
        snapshot = ProjectSnapshot(
            project=data["project"],
            characters=data.get("characters") or [],
            assets=data.get("assets") or [],
            pages=data.get("pages") or [],
            relationships=data.get("relationships") or [],
        )
    except ValidationError as e:
        raise ProjectImportError("Project file contains invalid data", {"errors": e.error_count()})
    _check_entities(snapshot)
    logger.info(f"Imported project '{snapshot.project.project_name}'")
    return snapshot
