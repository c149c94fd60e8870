"""
Manga Studio Exceptions

Exception classes raised by the authoring core.
"""


class MangaStudioError(Exception):
    """Base exception for all manga studio errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(MangaStudioError):
    """Raised when required configuration is missing or invalid."""
    pass


# =============================================================================
# AUTHORING STATE ERRORS
# =============================================================================

class LayoutError(MangaStudioError):
    """Raised for an unknown template or an invalid custom row configuration."""
    pass


class SceneError(MangaStudioError):
    """Raised when a scene field or scene id is invalid."""
    pass


class EntityNotFoundError(MangaStudioError):
    """Raised when a character or asset id does not resolve."""

    def __init__(self, entity_id: str):
        super().__init__(f"Entity not found: '{entity_id}'", {"entity_id": entity_id})


class RelationshipError(MangaStudioError):
    """Raised when a relationship references unknown entities."""
    pass


class SessionError(MangaStudioError):
    """Raised when a session operation is not allowed in the current state."""
    pass


# =============================================================================
# GENERATION ERRORS
# =============================================================================

class EmptyStoryError(MangaStudioError):
    """Raised when every scene description is blank."""

    def __init__(self):
        super().__init__("请至少为一个分镜提供故事描述。")


class ReferenceGatheringError(MangaStudioError):
    """Raised when no reference image could be prepared for assigned entities."""
    pass


class SynthesisError(MangaStudioError):
    """Raised when the image backend returns no usable image."""
    pass


class ContinuationError(MangaStudioError):
    """Raised when the text backend returns an unusable continuation."""
    pass


class StaleGenerationError(MangaStudioError):
    """Raised when committing a result superseded by a newer generation."""

    def __init__(self, epoch: int, current: int):
        super().__init__(
            "Generation result is stale",
            {"epoch": epoch, "current_epoch": current},
        )


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================

class ProjectImportError(MangaStudioError):
    """Raised when an imported project document is malformed."""
    pass
