"""Menu catalog loading.

The catalog is read once at startup from configuration. The expected shape
is:

```json
{
  "categories": {
    "Beverages": {
      "subcategories": {
        "Coffee": {"items": ["Mocha", "Latte"]}
      }
    },
    "Snacks": {"items": ["Cookies", "Chips"]}
  }
}
```

A category with a non-empty "subcategories" mapping is a branch; anything
else is a leaf. Missing or malformed configuration falls back to the
built-in catalog.
"""

import json
import logging
from typing import Any

from ..errors import CatalogError
from .models import MenuBranch, MenuCatalog, MenuLeaf, MenuNode

logger = logging.getLogger(__name__)


def default_catalog() -> MenuCatalog:
    """The built-in receptionist menu."""
    return MenuCatalog(
        categories={
            "Beverages": MenuBranch(
                name="Beverages",
                children={
                    "Coffee": MenuLeaf(
                        "Coffee", ("Mocha", "Espresso", "Latte", "Iced Coffee", "Cappuccino")
                    ),
                    "Tea": MenuLeaf(
                        "Tea", ("Green Tea", "Black Tea", "Herbal Tea", "Chai Tea")
                    ),
                    "Water": MenuLeaf("Water", ("Water", "Sparkling Water")),
                    "Hot Chocolate": MenuLeaf(
                        "Hot Chocolate", ("Hot Chocolate", "White Hot Chocolate")
                    ),
                },
            ),
            "Snacks": MenuLeaf("Snacks", ("Cookies", "Chips", "Fruit Basket", "Muffins")),
        }
    )


def load_catalog(raw: str | dict[str, Any] | None) -> MenuCatalog:
    """Build a catalog from configuration.

    Args:
        raw: JSON text or an already-decoded mapping, None if not configured.

    Returns:
        The parsed catalog, or the default catalog if raw is absent or invalid.
    """
    if raw is None or raw == "" or raw == {}:
        logger.info("Loaded default menu structure")
        return default_catalog()

    try:
        catalog = parse_catalog(raw)
    except CatalogError as e:
        logger.warning("Failed to load menu structure from configuration, using defaults: %s", e)
        return default_catalog()

    logger.info("Loaded menu structure from configuration")
    return catalog


def parse_catalog(raw: str | dict[str, Any]) -> MenuCatalog:
    """Parse a menu tree.

    Raises:
        CatalogError: If the JSON is invalid or the tree has the wrong shape.
    """
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CatalogError(f"invalid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise CatalogError("menu structure must be an object")

    categories = data.get("categories")
    if not isinstance(categories, dict) or not categories:
        raise CatalogError("menu structure has no categories")

    return MenuCatalog(
        categories={
            str(name): _parse_node(str(name), node) for name, node in categories.items()
        }
    )


def _parse_node(name: str, data: Any) -> MenuNode:
    if not isinstance(data, dict):
        raise CatalogError(f"category {name!r} must be an object")

    display_name = data.get("name") or name
    if not isinstance(display_name, str):
        raise CatalogError(f"category {name!r} has a non-string name")

    children = data.get("subcategories")
    if children:
        if not isinstance(children, dict):
            raise CatalogError(f"subcategories of {name!r} must be an object")
        return MenuBranch(
            name=display_name,
            children={
                str(child): _parse_node(str(child), node) for child, node in children.items()
            },
        )

    items = data.get("items") or []
    if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
        raise CatalogError(f"items of {name!r} must be a list of strings")
    return MenuLeaf(name=display_name, items=tuple(items))
