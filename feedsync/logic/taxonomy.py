"""Get-or-create resolution of taxonomy labels to catalog term ids."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from feedsync.db.catalog import CatalogStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CategoryPath:
    """A chain of labels, each nested under the previous one.

    ``root`` is a grouping term ("Marcas", "Zona", ...) that parents the chain
    without being attached to the record itself.
    """

    labels: tuple[str, ...]
    root: str | None = None


class TaxonomyResolver:
    def __init__(self, store: CatalogStore) -> None:
        self.store = store
        self._memo: dict[tuple[str, int | None], int] = {}

    def resolve(self, label: str, parent: int | None = None) -> int | None:
        key = (label, parent)
        if key in self._memo:
            return self._memo[key]
        try:
            term_id = self.store.find_term(label, parent)
            if term_id is None:
                term_id = self.store.create_term(label, parent)
                logger.debug("Created term %r under %s", label, parent)
        except SQLAlchemyError as exc:
            logger.warning("Could not resolve term %r under %s: %s", label, parent, exc)
            return None
        self._memo[key] = term_id
        return term_id

    def resolve_path(self, path: CategoryPath) -> list[int]:
        parent = None
        if path.root:
            parent = self.resolve(path.root)
            if parent is None:
                return []
        ids: list[int] = []
        for label in path.labels:
            if not label:
                break
            term_id = self.resolve(label, parent)
            if term_id is None:
                break
            ids.append(term_id)
            parent = term_id
        return ids

    def resolve_paths(self, paths: list[CategoryPath]) -> list[int]:
        ids: list[int] = []
        for path in paths:
            for term_id in self.resolve_path(path):
                if term_id not in ids:
                    ids.append(term_id)
        return ids

    def reset(self) -> None:
        self._memo.clear()
