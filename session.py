import logging

from errors import ProjectImportError, RelationshipError, SessionError
from layouts import CUSTOM_TEMPLATE_ID, DEFAULT_TEMPLATE_ID, get_template, resolve, validate_rows
from models import (
    COMIC_FORMAT_NAMES,
    DRAWING_STYLE_NAMES,
    ColorMode,
    ComicFormat,
    DeletionReport,
    Entity,
    EntityKind,
    Page,
    PageMode,
    Project,
    ProjectSnapshot,
    ResolvedLayout,
    SeedControl,
)
from registry import EntityRegistry
from scenes import SceneSet

logger = logging.getLogger(__name__)


class AuthoringSession:
    """
    Everything the authoring core reads and mutates for one open project.

    Invariants kept here:
    - the scene set always has as many scenes as the resolved layout has panels
    - scenes and continuation selections only reference entities that exist
    - pages are numbered 1..n in order
    """

    def __init__(
        self,
        project: Project,
        registry: EntityRegistry | None = None,
        pages: list[Page] | None = None,
    ):
        self.project = project
        self.registry = registry or EntityRegistry()
        self.pages: list[Page] = list(pages or [])
        self.template = get_template(DEFAULT_TEMPLATE_ID)
        self.custom_rows: list[int] = [1]
        self.layout: ResolvedLayout = resolve(self.template, self.custom_rows)
        self.scenes = SceneSet(self.layout.panel_count)
        self.page_mode = PageMode.SINGLE
        self.color_mode = ColorMode.COLOR
        self.selected_character_ids: list[str] = []
        self.selected_asset_ids: list[str] = []
        self.page_outline = ""
        self.continuation_context: Page | None = None
        self.seed = SeedControl()
        self.generation_epoch = 0
        logger.info(
            f"Opened project '{project.project_name}' "
            f"({COMIC_FORMAT_NAMES[project.format]}, {DRAWING_STYLE_NAMES[project.style]}): "
            f"{len(self.registry.entities)} entities, {len(self.pages)} pages"
        )

    @classmethod
    def from_snapshot(cls, snapshot: ProjectSnapshot) -> "AuthoringSession":
        try:
            registry = EntityRegistry(snapshot.characters, snapshot.assets)
        except ValueError as e:
            raise ProjectImportError(str(e), {"project_id": snapshot.project.project_id}) from e
        for relationship in snapshot.relationships:
            try:
                registry.add_relationship(relationship)
            except RelationshipError as e:
                logger.warning(f"Dropping relationship {relationship.id}: {e}")
        pages = sorted(snapshot.pages, key=lambda p: p.page_number)
        session = cls(snapshot.project, registry, pages)
        session._renumber_pages()
        return session

    def snapshot(self) -> ProjectSnapshot:
        return ProjectSnapshot(
            project=self.project,
            characters=self.registry.characters,
            assets=self.registry.assets,
            pages=list(self.pages),
            relationships=self.registry.relationships,
        )

    # --- layout ---

    def _apply_layout(self) -> None:
        self.layout = resolve(self.template, self.custom_rows)
        self.scenes.resize(self.layout.panel_count)

    def select_layout(self, template_id: str) -> ResolvedLayout:
        self.template = get_template(template_id)
        self._apply_layout()
        return self.layout

    def set_custom_rows(self, rows: list[int]) -> ResolvedLayout:
        validate_rows(rows)
        self.custom_rows = list(rows)
        if self.template.id == CUSTOM_TEMPLATE_ID:
            self._apply_layout()
        return self.layout

    # --- modes ---

    def set_page_mode(self, mode: PageMode) -> None:
        if mode == PageMode.SPREAD:
            if self.project.format != ComicFormat.PAGE:
                raise SessionError("Spreads are only available for page-format projects")
            if not self.pages:
                raise SessionError("A spread needs at least one existing page")
        self.page_mode = mode

    def effective_page_mode(self) -> PageMode:
        return self.page_mode if self.project.format == ComicFormat.PAGE else PageMode.SINGLE

    def set_color_mode(self, mode: ColorMode) -> None:
        self.color_mode = mode

    # --- continuation selection ---

    def toggle_continuation_selection(self, entity_id: str) -> bool:
        entity = self.registry.require(entity_id)
        selection = self.selected_character_ids if entity.kind == EntityKind.CHARACTER else self.selected_asset_ids
        if entity_id in selection:
            selection.remove(entity_id)
            return False
        selection.append(entity_id)
        return True

    def set_continuation_context(self, page_id: str | None) -> None:
        self.continuation_context = self.get_page(page_id) if page_id else None

    def clear_continuation_context(self) -> None:
        self.continuation_context = None

    def previous_story(self) -> str:
        if self.continuation_context is not None:
            return self.continuation_context.user_story_text
        return "\n".join(p.user_story_text for p in self.pages)

    # --- registry mutations ---

    def reconcile(self) -> None:
        """Drop every scene assignment and selection that no longer resolves."""
        character_ids = self.registry.ids(EntityKind.CHARACTER)
        asset_ids = self.registry.ids(EntityKind.ASSET)
        self.scenes.purge_missing(character_ids, asset_ids)
        self.selected_character_ids = [i for i in self.selected_character_ids if i in character_ids]
        self.selected_asset_ids = [i for i in self.selected_asset_ids if i in asset_ids]

    def add_entity(self, entity: Entity) -> Entity:
        if entity.kind == EntityKind.CHARACTER:
            return self.registry.add_character(entity)
        return self.registry.add_asset(entity)

    def update_entity(self, entity: Entity) -> Entity:
        return self.registry.update_entity(entity)

    def deletion_impact(self, entity_id: str) -> DeletionReport:
        return self.registry.deletion_impact(entity_id, self.pages)

    def _delete(self, entity_id: str, kind: EntityKind) -> DeletionReport:
        impact = self.registry.deletion_impact(entity_id, self.pages)
        if kind == EntityKind.CHARACTER:
            report = self.registry.delete_character(entity_id, self.scenes)
        else:
            report = self.registry.delete_asset(entity_id, self.scenes)
        self.reconcile()
        report.pages_mentioning = impact.pages_mentioning
        return report

    def delete_character(self, character_id: str) -> DeletionReport:
        return self._delete(character_id, EntityKind.CHARACTER)

    def delete_asset(self, asset_id: str) -> DeletionReport:
        return self._delete(asset_id, EntityKind.ASSET)

    # --- pages ---

    def next_page_number(self) -> int:
        return len(self.pages) + 1

    def get_page(self, page_id: str) -> Page:
        for page in self.pages:
            if page.page_id == page_id:
                return page
        raise SessionError(f"Page not found: '{page_id}'", {"page_id": page_id})

    def add_page(self, page: Page) -> Page:
        self.pages.append(page)
        return page

    def _renumber_pages(self) -> None:
        for number, page in enumerate(self.pages, start=1):
            page.page_number = number

    def delete_page(self, page_id: str) -> None:
        page = self.get_page(page_id)
        self.pages = [p for p in self.pages if p.page_id != page_id]
        self._renumber_pages()
        if self.continuation_context is not None and self.continuation_context.page_id == page_id:
            self.continuation_context = None
        if not self.pages and self.page_mode == PageMode.SPREAD:
            self.page_mode = PageMode.SINGLE
        logger.info(f"Deleted page {page.page_number} ({page_id}); {len(self.pages)} pages remain")

    def replace_page_image(self, page_id: str, image_url: str, mode: PageMode | None = None) -> Page:
        page = self.get_page(page_id)
        page.image_url = image_url
        if mode is not None:
            page.mode = mode
        return page

    # --- generation bookkeeping ---

    def begin_generation(self) -> int:
        self.generation_epoch += 1
        return self.generation_epoch

    def is_current(self, epoch: int) -> bool:
        return epoch == self.generation_epoch

    def reset_authoring(self) -> None:
        """Blank page state after a page is committed."""
        self.scenes.reset(self.layout.panel_count)
        self.page_outline = ""
        self.continuation_context = None
        self.page_mode = PageMode.SINGLE
