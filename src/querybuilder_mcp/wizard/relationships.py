"""Candidate joins between the selected tables."""

from __future__ import annotations

from querybuilder_mcp.models import (
    Relationship,
    RelationshipAnalysis,
    RelationshipKey,
    RelationshipKind,
)


class RelationshipState:
    """Ordered relationships, defined first, each with its own inclusion toggle."""

    def __init__(self) -> None:
        self._items: list[Relationship] = []

    @property
    def items(self) -> list[Relationship]:
        return [r.model_copy() for r in self._items]

    def populate(self, analysis: RelationshipAnalysis) -> None:
        """Replace the list with a fresh analysis result.

        New relationships default to selected when defined and unselected when
        suggested. A relationship whose identity was already present keeps the
        flag it had, so re-running analysis does not discard manual toggles.
        """
        previous = {r.key: r.selected for r in self._items}
        incoming = [*analysis.defined_relationships, *analysis.suggested_relationships]
        items: list[Relationship] = []
        seen: set[RelationshipKey] = set()
        for rel in incoming:
            if rel.key in seen:
                continue
            seen.add(rel.key)
            default = rel.relationship_type is RelationshipKind.DEFINED
            items.append(rel.model_copy(update={"selected": previous.get(rel.key, default)}))
        self._items = items

    def toggle(self, key: RelationshipKey) -> bool:
        """Flip ``selected`` for the matching relationship.

        Returns False when no relationship has that identity.
        """
        for idx, rel in enumerate(self._items):
            if rel.key == key:
                self._items[idx] = rel.model_copy(update={"selected": not rel.selected})
                return True
        return False

    def prune(self, tables: list[str]) -> None:
        """Drop relationships touching a table that is no longer selected."""
        keep = set(tables)
        self._items = [
            r for r in self._items if r.source_table in keep and r.target_table in keep
        ]

    def clear(self) -> None:
        self._items = []
