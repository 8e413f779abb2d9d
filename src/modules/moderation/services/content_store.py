"""Host-side content access used by retries and admin actions."""

from dataclasses import dataclass, field
from importlib import import_module
from typing import Protocol, runtime_checkable

from src.core.config import settings
from src.core.exception import ConfigurationError


@dataclass
class ContentEntity:
    ref_type: str
    ref_id: str
    fields: dict[str, str] = field(default_factory=dict)
    status: str | None = None

    def text(self, field_name: str) -> str:
        return self.fields.get(field_name, "") or ""


@runtime_checkable
class ContentStore(Protocol):
    async def get_entity(self, ref_type: str, ref_id: str) -> ContentEntity | None: ...

    async def update_field(self, ref_type: str, ref_id: str, field_name: str, value: str) -> None: ...

    async def update_status(self, ref_type: str, ref_id: str, status: str) -> None: ...


_content_store: ContentStore | None = None


def set_content_store(store: ContentStore | None) -> None:
    """Register the host implementation. Called once per process at startup."""
    global _content_store
    if store is not None and not isinstance(store, ContentStore):
        raise ConfigurationError(f"{type(store).__name__} does not implement ContentStore")
    _content_store = store


def load_content_store(path: str) -> ContentStore:
    """Build a store from a "package.module:factory" import path."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(f"Invalid content store path {path!r}, expected 'module:factory'")
    try:
        factory = getattr(import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Cannot load content store {path!r}: {e}") from e
    return factory()


def get_content_store() -> ContentStore:
    if _content_store is None and settings.MODERATION_CONTENT_STORE:
        set_content_store(load_content_store(settings.MODERATION_CONTENT_STORE))
    if _content_store is None:
        raise ConfigurationError("No content store registered")
    return _content_store
