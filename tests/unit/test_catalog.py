"""Unit tests for badge and achievement catalogs (app/gamification/catalog.py)"""
import dataclasses

import pytest

from app.core.exceptions import UnknownCatalogEntry, ValidationError
from app.gamification.catalog import (
    ACHIEVEMENT_CATALOG,
    BADGE_CATALOG,
    get_achievement,
    get_badge,
)


def test_badge_catalog_ids():
    assert list(BADGE_CATALOG) == [
        "first-game",
        "reading-master",
        "writing-expert",
        "sight-word-champion",
        "comprehension-genius",
        "streak-master",
        "level-up",
    ]


def test_achievement_points():
    assert {key: entry.points for key, entry in ACHIEVEMENT_CATALOG.items()} == {
        "welcome": 50,
        "first-reading": 25,
        "first-writing": 25,
        "sight-word-starter": 25,
        "comprehension-beginner": 25,
        "streak-3": 50,
        "streak-7": 100,
        "level-5": 75,
        "perfect-score": 100,
    }


def test_catalogs_are_read_only():
    with pytest.raises(TypeError):
        BADGE_CATALOG["new-badge"] = BADGE_CATALOG["first-game"]

    with pytest.raises(dataclasses.FrozenInstanceError):
        ACHIEVEMENT_CATALOG["welcome"].points = 1000


def test_unknown_badge_is_a_validation_error():
    with pytest.raises(UnknownCatalogEntry) as exc_info:
        get_badge("moon-landing")

    assert isinstance(exc_info.value, ValidationError)
    assert exc_info.value.field == "badge_id"


def test_unknown_achievement():
    with pytest.raises(UnknownCatalogEntry):
        get_achievement("nope")


def test_to_dict_serializes_enums():
    data = get_badge("streak-master").to_dict()

    assert data["category"] == "general"
    assert data["rarity"] == "rare"
    assert get_achievement("welcome").to_dict()["points"] == 50
