"""
Domain types for the upstream Star Wars API.
"""

from enum import Enum
from typing import Any

SwapiRecord = dict[str, Any]


class Category(str, Enum):
    """Resource categories the upstream API exposes."""

    PEOPLE = "people"
    FILMS = "films"
    STARSHIPS = "starships"
    VEHICLES = "vehicles"
    SPECIES = "species"
    PLANETS = "planets"

    @classmethod
    def parse(cls, value: str) -> "Category | None":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def names(cls) -> list[str]:
        return [category.value for category in cls]
