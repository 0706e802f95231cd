"""
RecipeCatalog -- registration-ordered recipe lookup and best-match selection.

Pure lookup: matching never mutates the catalog. Edits go through
replace(), which swaps the entry but keeps its registration position, so
tie-breaks stay stable across edits.

Usage:
    catalog = load_catalog(Path("recipes.json"))     # or default_catalog()
    matches = catalog.match({"valorant-win64-shipping", "discord"})
    best = catalog.select_best(matches)                # None when nothing matches
"""

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator

from workload_arbiter.configuration.changes import ResourceType
from workload_arbiter.errors import CatalogCorrupt
from workload_arbiter.recipes.models import AutomationRecipe
from workload_arbiter.security.validators import ValidationError, validate_identifier

logger = logging.getLogger(__name__)


class RecipeCatalog:
    """Holds recipes in registration order. Refuses to exist empty."""

    def __init__(
        self,
        recipes: Iterable[AutomationRecipe],
        logger: logging.Logger | None = None,
    ):
        self._log = logger or logging.getLogger(__name__)
        self._recipes: list[AutomationRecipe] = []
        self._positions: dict[str, int] = {}
        for recipe in recipes:
            self._register(recipe)
        if not self._recipes:
            raise CatalogCorrupt("Recipe catalog is empty")

    def _register(self, recipe: AutomationRecipe) -> None:
        if recipe.name in self._positions:
            raise CatalogCorrupt(f"Duplicate recipe name '{recipe.name}'")
        if any(r.id == recipe.id for r in self._recipes):
            raise CatalogCorrupt(f"Duplicate recipe id '{recipe.id}'")
        _check_actions(recipe)
        self._positions[recipe.name] = len(self._recipes)
        self._recipes.append(recipe)

    def __iter__(self) -> Iterator[AutomationRecipe]:
        return iter(list(self._recipes))

    def __len__(self) -> int:
        return len(self._recipes)

    def __contains__(self, name: object) -> bool:
        return name in self._positions

    def get(self, name: str) -> AutomationRecipe | None:
        position = self._positions.get(name)
        return self._recipes[position] if position is not None else None

    def replace(self, recipe: AutomationRecipe) -> None:
        """Swap the entry with the same name, keeping its registration position."""
        position = self._positions.get(recipe.name)
        if position is None:
            raise KeyError(recipe.name)
        _check_actions(recipe)
        self._recipes[position] = recipe
        self._log.info(f"[RecipeCatalog] Replaced recipe '{recipe.name}'")

    def match(self, running_processes: Iterable[str]) -> list[AutomationRecipe]:
        """Every recipe whose trigger set is a subset of the running set, in registration order."""
        running = {p.strip().lower() for p in running_processes}
        if not running:
            return []
        return [r for r in self._recipes if r.triggers <= running]

    def select_best(
        self, matches: Iterable[AutomationRecipe]
    ) -> AutomationRecipe | None:
        """
        Largest trigger set wins. On equal specificity, the recipe registered
        first wins, regardless of the order the matches were passed in.
        """
        best: AutomationRecipe | None = None
        best_key: tuple[int, int] | None = None
        for index, recipe in enumerate(matches):
            position = self._positions.get(recipe.name, len(self._recipes) + index)
            key = (-recipe.specificity, position)
            if best_key is None or key < best_key:
                best, best_key = recipe, key
        return best

    def by_category(self, category: str) -> list[AutomationRecipe]:
        """Recipes in one category (case-insensitive), in registration order."""
        wanted = category.strip().lower()
        return [r for r in self._recipes if r.category.lower() == wanted]

    def categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for recipe in self._recipes:
            if recipe.category:
                seen.setdefault(recipe.category, None)
        return list(seen)

    def best_match(self, running_processes: Iterable[str]) -> AutomationRecipe | None:
        best = self.select_best(self.match(running_processes))
        if best is None:
            self._log.debug("[RecipeCatalog] No matching recipe")
        return best

    def to_list(self) -> list[dict]:
        return [r.to_dict() for r in self._recipes]


def _check_actions(recipe: AutomationRecipe) -> None:
    try:
        for action in recipe.actions():
            action.validate()
        for agent_type in recipe.required_agents:
            validate_identifier(agent_type, "required agent")
    except ValidationError as e:
        raise CatalogCorrupt(f"Recipe '{recipe.name}' is invalid: {e}") from e


# =============================================================================
# JSON LOADING
# =============================================================================


def recipe_from_dict(data: dict) -> AutomationRecipe:
    """Parse one recipe entry. Any defect raises CatalogCorrupt."""
    if not isinstance(data, dict):
        raise CatalogCorrupt(f"Recipe entry must be an object, got {type(data).__name__}")
    try:
        name = data["name"]
        triggers = data["triggers"]
    except KeyError as e:
        raise CatalogCorrupt(f"Recipe entry missing field {e}") from e
    if not isinstance(name, str) or not name.strip():
        raise CatalogCorrupt("Recipe name must be a non-empty string")
    if not isinstance(triggers, list) or not all(isinstance(t, str) for t in triggers):
        raise CatalogCorrupt(f"Recipe '{name}' triggers must be a list of strings")
    required = data.get("required_agents", [])
    if not isinstance(required, list) or not all(isinstance(a, str) for a in required):
        raise CatalogCorrupt(f"Recipe '{name}' required_agents must be a list of strings")
    category = data.get("category", "")
    if not isinstance(category, str):
        raise CatalogCorrupt(f"Recipe '{name}' category must be a string")

    services = data.get("service_states", {})
    if not all(isinstance(v, bool) for v in services.values()):
        raise CatalogCorrupt(f"Recipe '{name}' service states must be booleans")

    allocations: dict[ResourceType, float] = {}
    for key, fraction in data.get("resource_allocations", {}).items():
        try:
            resource = ResourceType(key)
        except ValueError as e:
            raise CatalogCorrupt(f"Recipe '{name}' has unknown resource type '{key}'") from e
        if isinstance(fraction, bool) or not isinstance(fraction, (int, float)):
            raise CatalogCorrupt(f"Recipe '{name}' allocation for {key} must be a number")
        if not 0.0 <= fraction <= 1.0:
            raise CatalogCorrupt(
                f"Recipe '{name}' allocation for {key} out of range: {fraction}"
            )
        allocations[resource] = float(fraction)

    kwargs = {}
    if data.get("id"):
        kwargs["id"] = str(data["id"])
    return AutomationRecipe(
        name=name.strip(),
        triggers=frozenset(triggers),
        registry_changes=data.get("registry_changes", {}),
        service_states=services,
        resource_allocations=allocations,
        companion_apps=tuple(data.get("companion_apps", ())),
        description=data.get("description", ""),
        category=category.strip(),
        required_agents=frozenset(required),
        **kwargs,
    )


def load_catalog(path: Path, logger: logging.Logger | None = None) -> RecipeCatalog:
    """
    Load a catalog from a JSON document of the form {"recipes": [...]}.

    Raises:
        CatalogCorrupt: missing file, bad JSON, or any invalid entry.
            A partially-loaded catalog is never returned.
    """
    log = logger or logging.getLogger(__name__)
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error(f"[RecipeCatalog] Cannot read catalog {path}: {e}")
        raise CatalogCorrupt(f"Cannot read recipe catalog {path}: {e}") from e

    entries = data.get("recipes") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise CatalogCorrupt(f"Catalog {path} must contain a 'recipes' list")
    try:
        catalog = RecipeCatalog((recipe_from_dict(e) for e in entries), logger=log)
    except (AttributeError, TypeError, ValueError) as e:
        raise CatalogCorrupt(f"Catalog {path} has a malformed entry: {e}") from e
    log.info(f"[RecipeCatalog] Loaded {len(catalog)} recipes from {path}")
    return catalog
