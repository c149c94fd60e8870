import logging

from models import DeletionReport, Entity, EntityKind, Page, Relationship
from errors import EntityNotFoundError, RelationshipError
from scenes import SceneSet

logger = logging.getLogger(__name__)


class EntityRegistry:
    """
    Characters, assets and the relationships between them.

    Deleting an entity removes every relationship that touches it and purges
    its id from the scene set in the same call, so no caller ever observes a
    dangling reference.
    """

    def __init__(
        self,
        characters: list[Entity] | None = None,
        assets: list[Entity] | None = None,
        relationships: list[Relationship] | None = None,
    ):
        self._characters: list[Entity] = []
        self._assets: list[Entity] = []
        self._relationships: list[Relationship] = []
        for c in characters or []:
            self.add_character(c)
        for a in assets or []:
            self.add_asset(a)
        for r in relationships or []:
            self.add_relationship(r)

    @property
    def characters(self) -> list[Entity]:
        return list(self._characters)

    @property
    def assets(self) -> list[Entity]:
        return list(self._assets)

    @property
    def relationships(self) -> list[Relationship]:
        return list(self._relationships)

    @property
    def entities(self) -> list[Entity]:
        return [*self._characters, *self._assets]

    def _bucket(self, kind: EntityKind) -> list[Entity]:
        return self._characters if kind == EntityKind.CHARACTER else self._assets

    # --- lookups ---

    def get(self, entity_id: str) -> Entity | None:
        for entity in self.entities:
            if entity.id == entity_id:
                return entity
        return None

    def require(self, entity_id: str) -> Entity:
        entity = self.get(entity_id)
        if entity is None:
            raise EntityNotFoundError(entity_id)
        return entity

    def name_of(self, entity_id: str) -> str | None:
        entity = self.get(entity_id)
        return entity.name if entity else None

    def ids(self, kind: EntityKind) -> set[str]:
        return {e.id for e in self._bucket(kind)}

    def find_by_name(self, name: str, kind: EntityKind = EntityKind.CHARACTER) -> Entity | None:
        # Names are not unique; the first registered match wins.
        wanted = name.strip()
        for entity in self._bucket(kind):
            if entity.name.strip() == wanted:
                return entity
        return None

    # --- entities ---

    def _add(self, entity: Entity, kind: EntityKind) -> Entity:
        if entity.kind != kind:
            raise ValueError(f"Expected a {kind.value}, got a {entity.kind.value}")
        if entity.id in self.ids(kind):
            raise ValueError(f"Duplicate {kind.value} id: {entity.id}")
        self._bucket(kind).append(entity)
        logger.info(f"Added {kind.value} '{entity.name}' ({entity.id})")
        return entity

    def add_character(self, character: Entity) -> Entity:
        return self._add(character, EntityKind.CHARACTER)

    def add_asset(self, asset: Entity) -> Entity:
        return self._add(asset, EntityKind.ASSET)

    def update_entity(self, updated: Entity) -> Entity:
        bucket = self._bucket(updated.kind)
        for i, entity in enumerate(bucket):
            if entity.id == updated.id:
                bucket[i] = updated
                return updated
        raise EntityNotFoundError(updated.id)

    def deletion_impact(self, entity_id: str, pages: list[Page]) -> DeletionReport:
        """What deleting `entity_id` would affect, for a confirmation prompt."""
        entity = self.require(entity_id)
        return DeletionReport(
            entity_id=entity_id,
            name=entity.name,
            relationships_removed=sum(1 for r in self._relationships if entity_id in (r.entity1_id, r.entity2_id)),
            pages_mentioning=sum(1 for p in pages if p.user_story_text and entity.name in p.user_story_text),
        )

    def _delete(self, entity_id: str, kind: EntityKind, scenes: SceneSet | None) -> DeletionReport:
        bucket = self._bucket(kind)
        entity = next((e for e in bucket if e.id == entity_id), None)
        if entity is None:
            raise EntityNotFoundError(entity_id)

        remaining_entities = [e for e in bucket if e.id != entity_id]
        remaining_relationships = [
            r for r in self._relationships if entity_id not in (r.entity1_id, r.entity2_id)
        ]
        removed = len(self._relationships) - len(remaining_relationships)

        bucket[:] = remaining_entities
        self._relationships = remaining_relationships
        touched = scenes.purge_entity(entity_id) if scenes is not None else 0

        logger.info(
            f"Deleted {kind.value} '{entity.name}' ({entity_id}): "
            f"{removed} relationships removed, {touched} scenes updated"
        )
        return DeletionReport(
            entity_id=entity_id,
            name=entity.name,
            relationships_removed=removed,
            scenes_touched=touched,
        )

    def delete_character(self, character_id: str, scenes: SceneSet | None = None) -> DeletionReport:
        return self._delete(character_id, EntityKind.CHARACTER, scenes)

    def delete_asset(self, asset_id: str, scenes: SceneSet | None = None) -> DeletionReport:
        return self._delete(asset_id, EntityKind.ASSET, scenes)

    # --- relationships ---

    def _check_endpoints(self, relationship: Relationship) -> None:
        missing = [i for i in (relationship.entity1_id, relationship.entity2_id) if self.get(i) is None]
        if missing:
            raise RelationshipError("Relationship references unknown entities", {"missing": missing})
        if relationship.entity1_id == relationship.entity2_id:
            raise RelationshipError("An entity cannot relate to itself", {"entity_id": relationship.entity1_id})

    def add_relationship(self, relationship: Relationship) -> Relationship:
        self._check_endpoints(relationship)
        self._relationships.append(relationship)
        return relationship

    def update_relationship(self, updated: Relationship) -> Relationship:
        self._check_endpoints(updated)
        for i, r in enumerate(self._relationships):
            if r.id == updated.id:
                self._relationships[i] = updated
                return updated
        raise RelationshipError(f"Relationship not found: '{updated.id}'", {"relationship_id": updated.id})

    def delete_relationship(self, relationship_id: str) -> None:
        remaining = [r for r in self._relationships if r.id != relationship_id]
        if len(remaining) == len(self._relationships):
            raise RelationshipError(f"Relationship not found: '{relationship_id}'", {"relationship_id": relationship_id})
        self._relationships = remaining
