"""The book configuration: typed sections plus free-form tables for plugins."""

from __future__ import annotations

import copy
import datetime
import enum
import json
import logging
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any

import tomli_w

from .config_types import BookConfig, BuildConfig, ConfigError, HtmlConfig, RustConfig

__all__ = ["Config", "parse_env"]

log = logging.getLogger(__name__)

ENV_PREFIX = "MDFORGE_"

_LEGACY_ITEMS = (
    "title",
    "authors",
    "source",
    "description",
    "output.html.destination",
)

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


def parse_env(key: str) -> str | None:
    """Turn an environment variable name into a dotted config key, or ``None``.

    ``__`` separates nested keys and a single ``_`` becomes ``-``.
    """
    if not key.startswith(ENV_PREFIX):
        return None
    return key[len(ENV_PREFIX):].lower().replace("__", ".").replace("_", "-")


def _read(table: Any, key: str) -> Any:
    if not isinstance(table, Mapping):
        return None
    head, sep, tail = key.partition(".")
    if sep:
        child = table.get(head)
        return None if child is None else _read(child, tail)
    return table.get(key)


def _insert(table: dict[str, Any], key: str, value: Any) -> None:
    head, sep, tail = key.partition(".")
    if sep:
        child = table.get(head)
        if not isinstance(child, dict):
            child = {}
            table[head] = child
        _insert(child, tail, value)
    else:
        table[key] = value


def _delete(table: Any, key: str) -> Any:
    if not isinstance(table, dict):
        return None
    head, sep, tail = key.partition(".")
    if sep:
        return _delete(table.get(head), tail)
    return table.pop(key, None)


def _to_toml_value(value: Any, where: str) -> Any:
    """Convert ``value`` into something TOML can hold, raising ConfigError if impossible."""
    if value is None:
        raise ConfigError(f"Unable to represent the item at {where!r} as a TOML value")
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if not _I64_MIN <= value <= _I64_MAX:
            raise ConfigError(f"{where}: integer {value} does not fit in a TOML integer")
        return value
    if isinstance(value, (float, str, datetime.datetime, datetime.date, datetime.time)):
        return value
    if isinstance(value, PurePath):
        return value.as_posix()
    if isinstance(value, enum.Enum):
        return _to_toml_value(value.value, where)
    if hasattr(value, "to_value"):
        return _to_toml_value(value.to_value(), where)
    if isinstance(value, Mapping):
        table = {}
        for k, v in value.items():
            name = k.as_posix() if isinstance(k, PurePath) else k
            if not isinstance(name, str):
                raise ConfigError(f"{where}: table keys must be strings")
            if v is not None:
                table[name] = _to_toml_value(v, f"{where}.{name}")
        return table
    if isinstance(value, (list, tuple)):
        return [_to_toml_value(item, f"{where}[{i}]") for i, item in enumerate(value)]
    raise ConfigError(f"Unable to represent the item at {where!r} as a TOML value")


def _sorted_tree(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sorted_tree(v) for k, v in sorted(value.items())}
    if isinstance(value, list):
        return [_sorted_tree(v) for v in value]
    return value


def _updated(section: Any, key: str, value: Any) -> Any:
    """Return ``section`` with ``key`` replaced, or unchanged if the result is invalid."""
    raw = section.to_value()
    _insert(raw, key, value)
    try:
        return type(section).from_value(raw)
    except ConfigError:
        return section


def _is_legacy_format(table: Mapping[str, Any]) -> bool:
    return any(_read(table, item) is not None for item in _LEGACY_ITEMS)


@dataclass
class Config:
    """In-memory form of ``book.toml``: typed sections and arbitrary extra tables."""

    book: BookConfig = field(default_factory=BookConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    rust: RustConfig = field(default_factory=RustConfig)
    rest: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_str(cls, src: str) -> Config:
        """Parse a configuration from TOML text."""
        try:
            raw = tomllib.loads(src)
            return cls._from_table(raw)
        except (tomllib.TOMLDecodeError, ConfigError) as exc:
            raise ConfigError(f"Invalid configuration file: {exc}") from exc

    @classmethod
    def from_disk(cls, config_file: str | os.PathLike[str]) -> Config:
        """Load the configuration from a file on disk."""
        try:
            text = Path(config_file).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(
                f"Unable to open the configuration file: {config_file}"
            ) from exc
        return cls.from_str(text)

    @classmethod
    def _from_table(cls, raw: Any) -> Config:
        if not isinstance(raw, dict):
            raise ConfigError("A config file should always be a toml table")
        if _is_legacy_format(raw):
            log.warning("It looks like you are using the legacy book.toml format.")
            log.warning(
                "Move top level entries like `title`, `authors` and `description` "
                "under a `[book]` table, and `destination` from `[output.html]` "
                "to `build-dir` under `[build]`."
            )
            return cls._from_legacy(raw)
        table = dict(raw)
        book = table.pop("book", None)
        build = table.pop("build", None)
        rust = table.pop("rust", None)
        return cls(
            book=BookConfig() if book is None else BookConfig.from_value(book),
            build=BuildConfig() if build is None else BuildConfig.from_value(build),
            rust=RustConfig() if rust is None else RustConfig.from_value(rust),
            rest=table,
        )

    @classmethod
    def _from_legacy(cls, table: dict[str, Any]) -> Config:
        cfg = cls()
        title = table.pop("title", None)
        if isinstance(title, str):
            cfg.book.title = title
        authors = table.pop("authors", None)
        if isinstance(authors, list) and all(isinstance(a, str) for a in authors):
            cfg.book.authors = list(authors)
        source = table.pop("source", None)
        if isinstance(source, str):
            cfg.book.src = Path(source)
        description = table.pop("description", None)
        if isinstance(description, str):
            cfg.book.description = description
        destination = _delete(table, "output.html.destination")
        if isinstance(destination, str):
            cfg.build.build_dir = Path(destination)
        cfg.rest = table
        return cfg

    def update_from_env(self, environ: Mapping[str, str] | None = None) -> None:
        """Override settings from ``MDFORGE_*`` variables.

        Each value is parsed as JSON first, falling back to a plain string.
        """
        log.debug("Updating the config from environment variables")
        env = os.environ if environ is None else environ
        for name, raw_value in list(env.items()):
            key = parse_env(name)
            if key is None:
                continue
            log.debug("%s => %s", key, raw_value)
            try:
                parsed = json.loads(raw_value, parse_constant=_reject_constant)
            except ValueError:
                parsed = raw_value

            if key in ("book", "build") and isinstance(parsed, dict):
                for k, v in parsed.items():
                    self.set(f"{key}.{k}", v)
                return

            self.set(key, parsed)

    def get(self, key: str) -> Any:
        """Fetch an item from the free-form tables by dotted key, or ``None``.

        The returned tables and arrays are the stored ones, so mutating them
        changes the configuration.
        """
        return _read(self.rest, key)

    def set(self, index: str, value: Any) -> None:
        """Set a dotted key, creating or clobbering tables along the way."""
        converted = _to_toml_value(value, index)
        if index.startswith("book."):
            self.book = _updated(self.book, index[len("book."):], converted)
        elif index.startswith("build."):
            self.build = _updated(self.build, index[len("build."):], converted)
        else:
            _insert(self.rest, index, converted)

    def html_config(self) -> HtmlConfig | None:
        """Return the parsed ``[output.html]`` table, or ``None`` if absent or invalid."""
        value = self.get("output.html")
        if value is None:
            return None
        try:
            return HtmlConfig.from_value(value)
        except ConfigError as exc:
            log.error("Parsing configuration [output.html]: %s", exc)
            return None

    def get_renderer(self, index: str) -> dict[str, Any] | None:
        """Return the table for a renderer, or ``None``."""
        value = self.get(f"output.{index}")
        return value if isinstance(value, dict) else None

    def get_preprocessor(self, index: str) -> dict[str, Any] | None:
        """Return the table for a preprocessor, or ``None``."""
        value = self.get(f"preprocessor.{index}")
        return value if isinstance(value, dict) else None

    def to_dict(self) -> dict[str, Any]:
        """Return the whole configuration as nested TOML-ready tables, keys sorted."""
        table = _sorted_tree(copy.deepcopy(self.rest))
        table["book"] = self.book.to_value()
        if self.build != BuildConfig():
            table["build"] = self.build.to_value()
        if self.rust != RustConfig():
            table["rust"] = self.rust.to_value()
        return dict(sorted(table.items()))

    def to_toml(self) -> str:
        """Serialise the configuration as TOML text."""
        return tomli_w.dumps(self.to_dict())


def _reject_constant(name: str) -> Any:
    raise ValueError(f"unsupported JSON constant {name}")