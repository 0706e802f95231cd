"""
Automation recipes.

- models.py: AutomationRecipe
- catalog.py: RecipeCatalog (match, select_best) and the JSON loader
- defaults.py: built-in game, streaming, development and media profiles
"""
from .models import AutomationRecipe
from .catalog import RecipeCatalog, load_catalog, recipe_from_dict
from .defaults import default_catalog, default_recipes
