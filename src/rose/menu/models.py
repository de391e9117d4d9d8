"""Data models for the menu catalog and navigation state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class MenuLeaf:
    """A category that offers items directly."""

    name: str
    items: tuple[str, ...] = ()


@dataclass(frozen=True)
class MenuBranch:
    """A category that offers child categories."""

    name: str
    children: dict[str, MenuNode] = field(default_factory=dict)


MenuNode = Union[MenuLeaf, MenuBranch]


@dataclass(frozen=True)
class MenuCatalog:
    """The full menu tree, root categories in display order."""

    categories: dict[str, MenuNode] = field(default_factory=dict)

    def find(self, path: str) -> MenuNode | None:
        """Walk a dot-separated path from the root.

        Returns:
            The node at the path, or None if any segment is missing.
        """
        if not path:
            return None
        parts = path.split(".")
        node = self.categories.get(parts[0])
        for part in parts[1:]:
            if not isinstance(node, MenuBranch):
                return None
            node = node.children.get(part)
        return node

    def all_items(self) -> list[str]:
        """Every leaf item in catalog order."""
        items: list[str] = []
        for node in self.categories.values():
            _collect_items(node, items)
        return items


def _collect_items(node: MenuNode, items: list[str]) -> None:
    if isinstance(node, MenuLeaf):
        items.extend(node.items)
    else:
        for child in node.children.values():
            _collect_items(child, items)


def offered_options(node: MenuNode) -> list[str]:
    """Labels a category offers: child names for a branch, items for a leaf."""
    if isinstance(node, MenuBranch):
        return list(node.children)
    return list(node.items)


@dataclass
class MenuContext:
    """Where a session currently is in the menu."""

    path: str
    options: list[str]
    last_interaction: float = field(default_factory=time.time)
    timeout_seconds: float = 300

    def is_expired(self) -> bool:
        """Check if the context has outlived its timeout."""
        return (time.time() - self.last_interaction) > self.timeout_seconds


class NavigationKind(Enum):
    """Outcome of a navigation step."""

    NO_MATCH = "no_match"
    SHOW_OPTIONS = "show_options"
    FINAL_ITEM = "final_item"
    CANCELLED = "cancelled"


@dataclass
class NavigationResult:
    """Result of feeding one message to the navigator."""

    kind: NavigationKind
    message: str = ""
    category_name: str | None = None
    options: list[str] | None = None
    selected_item: str | None = None

    @property
    def is_definitive(self) -> bool:
        """True when the result answers the message by itself."""
        return self.kind is not NavigationKind.NO_MATCH
