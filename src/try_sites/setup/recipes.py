"""Setup recipes offered to new demo tenants.

Built-in recipes are declared here; additional ones are read from
``*.recipe.json`` files in a configurable directory. A recipe file looks
like::

    {
      "name": "Portfolio",
      "displayName": "Portfolio",
      "description": "A single-page portfolio.",
      "issetuprecipe": true,
      "tags": ["portfolio"],
      "features": ["Contents", "Themes"]
    }
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

RECIPE_FILE_SUFFIX = ".recipe.json"

_CORE_FEATURES = ["Admin", "Contents", "Settings", "Users", "Roles", "Themes"]


@dataclass(frozen=True)
class RecipeDescriptor:
    name: str
    display_name: str = ""
    description: str = ""
    is_setup_recipe: bool = True
    tags: tuple[str, ...] = ()
    features: tuple[str, ...] = ()


# ── Built-in recipes ──
BUILTIN_RECIPES: list[dict[str, Any]] = [
    {
        "name": "Blog",
        "displayName": "Blog",
        "description": "A blog with a landing page, posts, tags and comments.",
        "tags": ["blog"],
        "features": _CORE_FEATURES + ["Blog", "Taxonomies", "Menu", "Feeds"],
    },
    {
        "name": "Agency",
        "displayName": "Agency",
        "description": "A marketing site for a small agency.",
        "tags": ["agency", "marketing"],
        "features": _CORE_FEATURES + ["Flows", "Forms", "Menu", "Media"],
    },
    {
        "name": "ComingSoon",
        "displayName": "Coming Soon",
        "description": "A single page announcing an upcoming site.",
        "tags": ["landing"],
        "features": _CORE_FEATURES + ["Forms"],
    },
    {
        "name": "SaaS",
        "displayName": "Software as a Service",
        "description": "A multi-tenant site with user registration.",
        "tags": ["saas"],
        "features": _CORE_FEATURES + ["Tenants", "Registration", "Email"],
    },
    {
        "name": "TheTheme",
        "displayName": "TheTheme",
        "description": "A site showcasing the default front-end theme.",
        "tags": ["theme"],
        "features": _CORE_FEATURES + ["Menu", "Media", "Widgets"],
    },
    {
        "name": "Headless",
        "displayName": "Headless site",
        "description": "Content management with GraphQL and no front end.",
        "tags": ["headless", "api"],
        "features": ["Admin", "Contents", "Settings", "Users", "Roles", "GraphQL", "Queries"],
    },
]


def recipe_from_dict(data: dict[str, Any]) -> RecipeDescriptor:
    name = data.get("name")
    if not name or not isinstance(name, str):
        raise ValueError("Recipe is missing a 'name'")
    return RecipeDescriptor(
        name=name,
        display_name=data.get("displayName") or name,
        description=data.get("description", ""),
        is_setup_recipe=bool(data.get("issetuprecipe", data.get("isSetupRecipe", True))),
        tags=tuple(data.get("tags", ())),
        features=tuple(data.get("features", ())),
    )


def load_recipe_directory(directory: str | Path) -> list[RecipeDescriptor]:
    """Read every recipe file in ``directory``; unreadable files are skipped."""
    path = Path(directory)
    if not path.is_dir():
        logger.warning("Recipes directory %s does not exist", path)
        return []

    recipes = []
    for file in sorted(path.glob(f"*{RECIPE_FILE_SUFFIX}")):
        try:
            recipes.append(recipe_from_dict(json.loads(file.read_text(encoding="utf-8"))))
        except (OSError, ValueError) as exc:
            logger.warning("Skipping recipe file %s: %s", file.name, exc)
    return recipes


class RecipeCatalog:
    """Built-in recipes plus those found on disk; disk entries win on name clashes."""

    def __init__(self, recipes_dir: str | Path | None = None, include_builtins: bool = True):
        self.recipes_dir = recipes_dir
        self.include_builtins = include_builtins

    def get_recipes(self) -> list[RecipeDescriptor]:
        by_name: dict[str, RecipeDescriptor] = {}
        if self.include_builtins:
            for data in BUILTIN_RECIPES:
                recipe = recipe_from_dict(data)
                by_name[recipe.name] = recipe
        if self.recipes_dir:
            for recipe in load_recipe_directory(self.recipes_dir):
                by_name[recipe.name] = recipe
        return sorted(by_name.values(), key=lambda r: r.name)
