"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import pytest

from fakes import FakeSynthesizer, make_image_url
from models import ComicFormat, DrawingStyle, Entity, Project, Relationship
from registry import EntityRegistry
from session import AuthoringSession


@pytest.fixture
def image_url() -> str:
    return make_image_url()


@pytest.fixture
def page_project() -> Project:
    return Project.create("Knights", ComicFormat.PAGE, DrawingStyle.JAPANESE_SHONEN)


@pytest.fixture
def webtoon_project() -> Project:
    return Project.create("Scroll", ComicFormat.WEBTOON, DrawingStyle.CHIBI)


@pytest.fixture
def aria(image_url) -> Entity:
    return Entity.character("Aria", "silver-haired knight", image_url, id="character-aria")


@pytest.fixture
def bram(image_url) -> Entity:
    return Entity.character("Bram", "burly blacksmith", image_url, id="character-bram")


@pytest.fixture
def sword(image_url) -> Entity:
    return Entity.asset("Sword", "glowing runed blade", image_url, id="asset-sword")


@pytest.fixture
def registry(aria, bram, sword) -> EntityRegistry:
    return EntityRegistry(
        characters=[aria, bram],
        assets=[sword],
        relationships=[Relationship(id="rel-1", entity1_id=aria.id, entity2_id=bram.id, description="is the rival of")],
    )


@pytest.fixture
def session(page_project, registry) -> AuthoringSession:
    return AuthoringSession(page_project, registry)


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()
