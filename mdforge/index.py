"""Preprocessor that renames ``README.md`` chapters to ``index.md``."""

from __future__ import annotations

import logging
import re
from pathlib import PurePath
from typing import Any

from .preprocess import Preprocessor, PreprocessorContext, _iter_chapters

__all__ = ["IndexPreprocessor", "is_readme_file"]

log = logging.getLogger(__name__)

_README = re.compile(r"readme", re.IGNORECASE)


def is_readme_file(path: str | PurePath) -> bool:
    """Tell whether the file stem of ``path`` is ``readme``, ignoring case."""
    return _README.fullmatch(PurePath(path).stem) is not None


def _warn_readme_name_conflict(readme_path: PurePath, index_path: PurePath) -> None:
    file_name = readme_path.name
    parent_dir = index_path.parent
    log.warning(
        "It seems that there are both %r and index.md under \"%s\".", file_name, parent_dir
    )
    log.warning("%r is converted into index.html by default. It may cause", file_name)
    log.warning("unexpected behavior if putting both files under the same directory.")
    log.warning("To solve the warning, try to rearrange the book structure or disable")
    log.warning('the "index" preprocessor to stop the conversion.')


class IndexPreprocessor(Preprocessor):
    """Converts chapters named ``README.md`` into ``index.md``."""

    NAME = "index"

    def name(self) -> str:
        return self.NAME

    def run(self, ctx: PreprocessorContext, book: Any) -> Any:
        source_dir = ctx.root / ctx.config.book.src
        for chapter in _iter_chapters(book):
            path = chapter.get("path")
            if path is None or not is_readme_file(path):
                continue
            original = PurePath(path)
            renamed = original.with_name("index.md")
            index_md = source_dir / renamed
            if index_md.exists():
                _warn_readme_name_conflict(original, index_md)
            chapter["path"] = str(renamed) if isinstance(path, str) else renamed
        return book

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IndexPreprocessor)

    def __hash__(self) -> int:
        return hash(self.NAME)