"""Unit tests for tag syntax and first-come tag ownership."""

from __future__ import annotations

import pytest

from mlm_core.errors import DuplicateTagError, UnitValidationError
from mlm_core.tags import TagRegistry, is_tag, validate_tag


@pytest.mark.parametrize("tag", ["#storage", "#key-value", "#cache_2"])
def test_valid_tags_pass(tag: str) -> None:
    assert validate_tag(tag) == tag
    assert is_tag(tag)


@pytest.mark.parametrize("tag", ["storage", "#", "#with space", "#dot.ted", "##double"])
def test_invalid_tags_are_rejected(tag: str) -> None:
    with pytest.raises(UnitValidationError, match="invalid feature tag"):
        validate_tag(tag, unit="memStorage")


def test_first_claim_wins_and_second_names_the_owner() -> None:
    registry = TagRegistry()
    registry.claim("#storage", "memStorage")

    with pytest.raises(DuplicateTagError) as excinfo:
        registry.claim("#storage", "redisStorage")

    assert excinfo.value.owner == "memStorage"
    assert "memStorage" in str(excinfo.value)
    assert registry["#storage"] == "memStorage"
    assert registry.owner("#missing") is None


def test_provided_by_lists_tags_of_one_unit() -> None:
    registry = TagRegistry()
    registry.claim("#storage", "memStorage")
    registry.claim("#cache", "memStorage")
    registry.claim("#queue", "broker")

    assert registry.provided_by("memStorage") == ("#storage", "#cache")
    assert dict(registry) == {"#storage": "memStorage", "#cache": "memStorage", "#queue": "broker"}
