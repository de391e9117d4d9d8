"""Hierarchical menu catalog and per-session navigation."""

from .catalog import default_catalog, load_catalog
from .models import (
    MenuBranch,
    MenuCatalog,
    MenuContext,
    MenuLeaf,
    NavigationKind,
    NavigationResult,
)
from .navigator import MenuContextStore, MenuNavigator, format_offer

__all__ = [
    "MenuBranch",
    "MenuCatalog",
    "MenuContext",
    "MenuContextStore",
    "MenuLeaf",
    "MenuNavigator",
    "NavigationKind",
    "NavigationResult",
    "default_catalog",
    "format_offer",
    "load_catalog",
]
