"""Preprocessing support: the context handed to preprocessors and their interface."""

from __future__ import annotations

import abc
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w

from .config import Config
from .config_types import ConfigError

__all__ = [
    "MDFORGE_VERSION",
    "PreprocessorError",
    "PreprocessorContext",
    "Preprocessor",
]

MDFORGE_VERSION = "0.1.0"
"""Version reported to preprocessors so they can check compatibility."""


class PreprocessorError(Exception):
    """Raised when a preprocessor cannot be started, fails, or sends bad data."""


@dataclass
class PreprocessorContext:
    """Extra information given to a preprocessor while it processes a book."""

    root: Path
    config: Config
    renderer: str
    mdbook_version: str = MDFORGE_VERSION
    chapter_titles: dict[Path, str] = field(
        default_factory=dict, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        self.root = Path(self.root)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form of the context; chapter titles are left out."""
        return {
            "root": str(self.root),
            "config": self.config.to_dict(),
            "renderer": self.renderer,
            "mdbook_version": self.mdbook_version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> PreprocessorContext:
        """Rebuild a context from the form produced by :meth:`to_dict`."""
        if not isinstance(data, Mapping):
            raise PreprocessorError("The preprocessor context should be an object")
        try:
            root = data["root"]
            raw_config = data["config"]
            renderer = data["renderer"]
            version = data["mdbook_version"]
        except KeyError as exc:
            raise PreprocessorError(
                f"The preprocessor context is missing the {exc.args[0]!r} field"
            ) from None
        for name, value in (("root", root), ("renderer", renderer), ("mdbook_version", version)):
            if not isinstance(value, str):
                raise PreprocessorError(f"The {name!r} field should be a string")
        if not isinstance(raw_config, Mapping):
            raise PreprocessorError("The 'config' field should be an object")
        try:
            config = Config.from_str(tomli_w.dumps(dict(raw_config)))
        except (TypeError, ValueError, ConfigError) as exc:
            raise PreprocessorError(f"Invalid configuration in the context: {exc}") from exc
        return cls(root=Path(root), config=config, renderer=renderer, mdbook_version=version)


class Preprocessor(abc.ABC):
    """An operation run on a book after loading and before rendering."""

    @abc.abstractmethod
    def name(self) -> str:
        """Return the preprocessor's name."""

    @abc.abstractmethod
    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        """Process ``book`` and return the updated book."""

    def supports_renderer(self, renderer: str) -> bool:
        """Tell whether this preprocessor works with ``renderer``; always true by default."""
        return True


def _walk(items: Iterable[Any]) -> Iterator[dict[str, Any]]:
    for item in items:
        if isinstance(item, Mapping):
            chapter = item.get("Chapter")
            if isinstance(chapter, dict):
                yield from _walk(chapter.get("sub_items") or ())
                yield chapter


def _iter_chapters(book: Any) -> Iterator[dict[str, Any]]:
    """Yield every chapter of a book, nested ones before their parent.

    A book is either a mapping with a ``sections`` list or the list itself;
    chapters are items of the form ``{"Chapter": {...}}``.
    """
    items = book.get("sections") or () if isinstance(book, Mapping) else book
    yield from _walk(items)