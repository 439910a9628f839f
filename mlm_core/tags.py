"""Registry of ``#tag`` features and the unit that owns each one."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Iterator

from .errors import DuplicateTagError, UnitValidationError

TAG_PATTERN = re.compile(r"#[\w-]+")


def is_tag(name: str) -> bool:
    """Return whether ``name`` is a tag reference rather than a unit name."""

    return name.startswith("#")


def validate_tag(tag: str, *, unit: str | None = None) -> str:
    if not isinstance(tag, str) or TAG_PATTERN.fullmatch(tag) is None:
        raise UnitValidationError(
            f"invalid feature tag {tag!r}, must be #<tag-name>",
            unit=unit,
            field="provides",
        )
    return tag


class TagRegistry(Mapping):
    """First-come ownership of tags; an owner, once set, never changes."""

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}
        self._logger = logging.getLogger(__name__)

    def claim(self, tag: str, unit: str) -> None:
        """Give ``tag`` to ``unit``, raising if another unit already owns it."""

        validate_tag(tag, unit=unit)
        owner = self._owners.get(tag)
        if owner is not None:
            raise DuplicateTagError(tag, owner, unit)
        self._owners[tag] = unit
        self._logger.debug("tag %s owned by %s", tag, unit)

    def owner(self, tag: str) -> str | None:
        return self._owners.get(tag)

    def __getitem__(self, tag: str) -> str:
        return self._owners[tag]

    def __iter__(self) -> Iterator[str]:
        return iter(self._owners)

    def __len__(self) -> int:
        return len(self._owners)

    def provided_by(self, unit: str) -> tuple[str, ...]:
        return tuple(tag for tag, owner in self._owners.items() if owner == unit)
