"""Tests for AutomationRecipe, RecipeCatalog and the JSON catalog loader."""

import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from workload_arbiter.configuration.changes import ChangeKind, ResourceType
from workload_arbiter.errors import CatalogCorrupt
from workload_arbiter.recipes import (
    AutomationRecipe,
    RecipeCatalog,
    default_catalog,
    load_catalog,
    recipe_from_dict,
)
from workload_arbiter.recipes.defaults import PRIORITY_SEPARATION


def _recipe(name, *triggers, **kwargs):
    return AutomationRecipe(name=name, triggers=frozenset(triggers), **kwargs)


class TestAutomationRecipe:
    def test_triggers_are_lowercased(self):
        recipe = _recipe("Game", "Game.EXE")
        assert recipe.triggers == frozenset({"game.exe"})
        assert recipe.specificity == 1

    def test_maps_are_read_only(self):
        recipe = _recipe("Game", "game.exe", registry_changes={PRIORITY_SEPARATION: 0x26})
        with pytest.raises(TypeError):
            recipe.registry_changes[PRIORITY_SEPARATION] = 2

    def test_changes_follow_apply_order(self):
        recipe = _recipe(
            "Stream",
            "obs64.exe",
            registry_changes={PRIORITY_SEPARATION: 0x26},
            service_states={"SysMain": False},
            resource_allocations={ResourceType.NETWORK: 0.8},
            companion_apps=("Discord",),
        )
        kinds = [c.kind for c in recipe.to_changes()]
        assert kinds == [
            ChangeKind.REGISTRY,
            ChangeKind.SERVICE,
            ChangeKind.RESOURCE_ALLOCATION,
            ChangeKind.COMPANION_APP,
        ]
        assert all(c.source == "Stream" for c in recipe.to_changes())
        assert all(c.agent_type is None for c in recipe.to_changes())


class TestRecipeCatalog:
    def test_empty_catalog_is_corrupt(self):
        with pytest.raises(CatalogCorrupt):
            RecipeCatalog([])

    def test_duplicate_names_are_corrupt(self):
        with pytest.raises(CatalogCorrupt):
            RecipeCatalog([_recipe("A", "a.exe"), _recipe("A", "b.exe")])

    def test_invalid_action_is_corrupt(self):
        bad = _recipe("Bad", "a.exe", resource_allocations={ResourceType.CPU: 1.5})
        with pytest.raises(CatalogCorrupt):
            RecipeCatalog([bad])

    def test_match_is_subset_test(self):
        catalog = RecipeCatalog([
            _recipe("Game", "game.exe"),
            _recipe("Game+Stream", "game.exe", "obs64.exe"),
        ])
        names = [r.name for r in catalog.match(["GAME.exe", "notepad.exe"])]
        assert names == ["Game"]
        names = [r.name for r in catalog.match(["game.exe", "obs64.exe"])]
        assert names == ["Game", "Game+Stream"]

    def test_empty_process_list_matches_nothing(self):
        catalog = RecipeCatalog([_recipe("Always")])
        assert catalog.match([]) == []
        assert catalog.best_match([]) is None

    def test_empty_trigger_set_matches_any_non_empty_input(self):
        catalog = RecipeCatalog([_recipe("Always")])
        assert [r.name for r in catalog.match(["anything.exe"])] == ["Always"]

    def test_most_specific_recipe_wins(self):
        catalog = RecipeCatalog([
            _recipe("Game", "game.exe"),
            _recipe("Game+Stream", "game.exe", "obs64.exe"),
        ])
        assert catalog.best_match(["game.exe", "obs64.exe"]).name == "Game+Stream"

    def test_tie_goes_to_first_registered(self):
        catalog = RecipeCatalog([
            _recipe("First", "a.exe"),
            _recipe("Second", "b.exe"),
        ])
        matches = catalog.match(["a.exe", "b.exe"])
        assert catalog.select_best(matches).name == "First"
        assert catalog.select_best(list(reversed(matches))).name == "First"

    def test_replace_keeps_registration_position(self):
        catalog = RecipeCatalog([_recipe("First", "a.exe"), _recipe("Second", "b.exe")])
        catalog.replace(_recipe("First", "a.exe", description="edited"))
        assert [r.name for r in catalog] == ["First", "Second"]
        assert catalog.get("First").description == "edited"
        assert catalog.best_match(["a.exe", "b.exe"]).name == "First"

    def test_replace_unknown_raises(self):
        catalog = RecipeCatalog([_recipe("First", "a.exe")])
        with pytest.raises(KeyError):
            catalog.replace(_recipe("Other", "b.exe"))

    def test_matching_does_not_mutate(self):
        catalog = default_catalog()
        before = catalog.to_list()
        catalog.match(["cs2.exe", "obs64.exe"])
        catalog.best_match(["valorant-win64-shipping.exe"])
        assert catalog.to_list() == before


class TestDefaultCatalog:
    def test_compound_recipe_beats_single_game(self):
        best = default_catalog().best_match(["valorant-win64-shipping.exe", "obs64.exe"])
        assert best.name == "Gaming + Streaming"

    def test_single_game(self):
        assert default_catalog().best_match(["cs2.exe", "chrome.exe"]).name == "CS2"

    def test_universal_is_the_baseline(self):
        assert default_catalog().best_match(["notepad.exe"]).name == "Universal"


class TestCategories:
    def test_by_category_keeps_registration_order(self):
        catalog = RecipeCatalog([
            _recipe("B", "b.exe", category="Gaming"),
            _recipe("Edit", "e.exe", category="ContentCreation"),
            _recipe("A", "a.exe", category="Gaming"),
        ])
        assert [r.name for r in catalog.by_category("Gaming")] == ["B", "A"]
        assert [r.name for r in catalog.by_category("gaming")] == ["B", "A"]
        assert catalog.by_category("Streaming") == []
        assert catalog.categories() == ["Gaming", "ContentCreation"]

    def test_default_games_require_the_gaming_agent(self):
        games = default_catalog().by_category("Gaming")
        assert [r.name for r in games] == [
            "VALORANT", "CS2", "Apex Legends", "Fortnite", "Warzone",
        ]
        assert all(r.required_agents == frozenset({"gaming"}) for r in games)

    def test_compound_recipes_require_both_agents(self):
        recipe = default_catalog().get("Gaming + Streaming")
        assert recipe.category == "Compound"
        assert recipe.required_agents == frozenset({"gaming", "streaming"})
        assert recipe.to_dict()["required_agents"] == ["gaming", "streaming"]

    def test_required_agents_are_normalized(self):
        recipe = _recipe("Edit", "e.exe", required_agents=frozenset({" Content_Creation "}))
        assert recipe.required_agents == frozenset({"content_creation"})

    def test_malformed_required_agent_is_corrupt(self):
        with pytest.raises(CatalogCorrupt):
            RecipeCatalog([_recipe("Bad", "b.exe", required_agents=frozenset({"9lives"}))])


class TestLoadCatalog:
    def test_loads_json_catalog(self, tmp_path):
        path = tmp_path / "recipes.json"
        path.write_text(json.dumps({"recipes": [
            {
                "name": "Game",
                "triggers": ["game.exe"],
                "registry_changes": {PRIORITY_SEPARATION: 38},
                "resource_allocations": {"gpu": 0.9},
                "companion_apps": ["Discord"],
            },
        ]}))
        catalog = load_catalog(path)
        recipe = catalog.get("Game")
        assert recipe.resource_allocations == {ResourceType.GPU: 0.9}
        assert recipe.companion_apps == ("Discord",)

    def test_missing_file_is_corrupt(self, tmp_path):
        with pytest.raises(CatalogCorrupt):
            load_catalog(tmp_path / "missing.json")

    def test_bad_json_is_corrupt(self, tmp_path):
        path = tmp_path / "recipes.json"
        path.write_text("{not json")
        with pytest.raises(CatalogCorrupt):
            load_catalog(path)

    def test_one_bad_entry_rejects_the_whole_catalog(self, tmp_path):
        path = tmp_path / "recipes.json"
        path.write_text(json.dumps({"recipes": [
            {"name": "Good", "triggers": ["a.exe"]},
            {"name": "Bad", "triggers": ["b.exe"], "resource_allocations": {"quantum": 0.5}},
        ]}))
        with pytest.raises(CatalogCorrupt):
            load_catalog(path)

    def test_recipe_from_dict_requires_name(self):
        with pytest.raises(CatalogCorrupt):
            recipe_from_dict({"triggers": ["a.exe"]})

    def test_category_and_required_agents_are_loaded(self):
        recipe = recipe_from_dict({
            "name": "Render",
            "triggers": ["blender.exe"],
            "category": "ContentCreation",
            "required_agents": ["content_creation"],
        })
        assert recipe.category == "ContentCreation"
        assert recipe.required_agents == frozenset({"content_creation"})

    @pytest.mark.parametrize("field,value", [
        ("required_agents", "gaming"),
        ("required_agents", [1]),
        ("category", 3),
    ])
    def test_malformed_category_fields_are_corrupt(self, field, value):
        with pytest.raises(CatalogCorrupt):
            recipe_from_dict({"name": "X", "triggers": ["x.exe"], field: value})


_PROCESSES = st.sampled_from(["a.exe", "b.exe", "c.exe", "d.exe"])


@settings(max_examples=60, deadline=None)
@given(
    trigger_sets=st.lists(st.frozensets(_PROCESSES, max_size=3), min_size=1, max_size=6),
    running=st.lists(_PROCESSES, max_size=4),
)
def test_best_match_is_deterministic_and_maximal(trigger_sets, running):
    catalog = RecipeCatalog(
        AutomationRecipe(name=f"r{i}", triggers=t) for i, t in enumerate(trigger_sets)
    )
    first = catalog.best_match(running)
    second = catalog.best_match(list(reversed(running)))
    assert (first and first.name) == (second and second.name)
    matches = catalog.match(running)
    if first is not None:
        assert first.specificity == max(r.specificity for r in matches)
        tied = [r.name for r in matches if r.specificity == first.specificity]
        assert first.name == tied[0]
