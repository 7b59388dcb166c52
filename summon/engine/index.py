"""In-memory search index with fuzzy top-K ranking."""

import heapq
from collections import OrderedDict
from dataclasses import dataclass
from operator import itemgetter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from .algorithms import FoldedText, FuzzyMatcher, fold_query, fold_text, score_candidate
from .config import SearchConfig
from .errors import InvalidItemError
from .metrics import LatencyTimer, MetricsCollector, get_metrics
from .models import IndexedItem, IndexStats, ItemType, ScoredResult


@dataclass(frozen=True)
class _Entry:
    """An item with its name and path folded once at insert time."""
    item: IndexedItem
    name: FoldedText
    path: FoldedText

    @classmethod
    def build(cls, item: IndexedItem) -> "_Entry":
        return cls(item=item, name=fold_text(item.name), path=fold_text(item.path))


def coerce_item(obj: Any) -> IndexedItem:
    """
    Build an IndexedItem from an item or a mapping.

    Mappings use the keys id, name, path (optional) and item_type or type.

    Raises:
        InvalidItemError: when the object cannot form a valid item.
    """
    if isinstance(obj, IndexedItem):
        return obj
    if isinstance(obj, Mapping):
        item_type = obj.get("item_type", obj.get("type"))
        return IndexedItem.create(obj.get("id"), obj.get("name"), obj.get("path", ""), item_type)
    raise InvalidItemError(f"Cannot build an item from {type(obj).__name__}")


class SearchIndex:
    """
    Mutable collection of indexed items answering ranked top-K queries.

    Re-adding an existing id overwrites the stored item in place: it keeps
    its original insertion slot and the per-type counts follow the new type.
    Results are ordered by score, then case-folded name, name and id.

    Not thread-safe: callers serialize access per index.
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or SearchConfig()
        self._entries: Dict[str, _Entry] = {}
        self._counts: Dict[ItemType, int] = {item_type: 0 for item_type in ItemType}
        self._matcher = FuzzyMatcher()
        self._cache: "OrderedDict[Tuple[str, int], Tuple[ScoredResult, ...]]" = OrderedDict()
        self._metrics = metrics or get_metrics()

    # Mutation

    def add_item(self, id: str, name: str, path: str, item_type) -> bool:
        """Add or overwrite an item. Returns False, leaving the index untouched, on invalid input."""
        try:
            item = IndexedItem.create(id, name, path, item_type)
        except InvalidItemError as e:
            logger.warning(f"Rejected item {id!r}: {e}")
            self._metrics.increment_counter("index.rejected_items")
            return False

        self._insert(item)
        self.clear_cache()
        logger.debug(f"Indexed item: {item.id} ({item.item_type.name})")
        return True

    def add_items(self, items: Iterable[Any]) -> bool:
        """
        Add a batch of items.

        Every item is validated before any is inserted; one invalid item
        rejects the whole batch.
        """
        try:
            validated = [coerce_item(obj) for obj in items]
        except InvalidItemError as e:
            logger.warning(f"Rejected item batch: {e}")
            self._metrics.increment_counter("index.rejected_items")
            return False

        for item in validated:
            self._insert(item)
        self.clear_cache()
        logger.debug(f"Indexed {len(validated)} items")
        return True

    def replace_type(self, item_type, items: Iterable[Any]) -> bool:
        """Atomically replace every item of one type with a new set."""
        try:
            target = ItemType.parse(item_type)
            validated = [coerce_item(obj) for obj in items]
            for item in validated:
                if item.item_type is not target:
                    raise InvalidItemError(
                        f"Item {item.id!r} has type {item.item_type.name}, expected {target.name}"
                    )
        except InvalidItemError as e:
            logger.warning(f"Rejected replacement batch: {e}")
            self._metrics.increment_counter("index.rejected_items")
            return False

        entries = {
            item_id: entry for item_id, entry in self._entries.items()
            if entry.item.item_type is not target
        }
        counts = {t: 0 for t in ItemType}
        for entry in entries.values():
            counts[entry.item.item_type] += 1
        for item in validated:
            previous = entries.get(item.id)
            if previous is not None:
                counts[previous.item.item_type] -= 1
            entries[item.id] = _Entry.build(item)
            counts[item.item_type] += 1

        self._entries = entries
        self._counts = counts
        self.clear_cache()
        logger.debug(f"Replaced {target.name} items: {counts[target]} now indexed")
        return True

    def remove_item(self, id: str) -> Optional[IndexedItem]:
        """Remove an item by id. Returns the removed item, or None."""
        entry = self._entries.pop(id, None)
        if entry is None:
            return None
        self._counts[entry.item.item_type] -= 1
        self.clear_cache()
        return entry.item

    def remove_items(self, ids: Iterable[str]) -> int:
        return sum(1 for item_id in ids if self.remove_item(item_id) is not None)

    def clear_by_type(self, item_type) -> int:
        """Remove all items of a type. Returns how many were removed."""
        try:
            target = ItemType.parse(item_type)
        except InvalidItemError as e:
            logger.warning(f"Cannot clear items: {e}")
            return 0

        doomed = [
            item_id for item_id, entry in self._entries.items()
            if entry.item.item_type is target
        ]
        for item_id in doomed:
            del self._entries[item_id]
        self._counts[target] = 0
        if doomed:
            self.clear_cache()
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._counts = {item_type: 0 for item_type in ItemType}
        self.clear_cache()

    def clear_cache(self) -> None:
        self._cache.clear()

    def _insert(self, item: IndexedItem) -> None:
        previous = self._entries.get(item.id)
        if previous is not None:
            self._counts[previous.item.item_type] -= 1
        self._entries[item.id] = _Entry.build(item)
        self._counts[item.item_type] += 1

    # Queries

    def search(self, query: str, limit: Optional[int] = None) -> Tuple[ScoredResult, ...]:
        """
        Rank items against a query.

        An empty (or whitespace-only) query and a zero limit both return an
        empty tuple. Items that do not match are excluded.
        """
        if limit is None:
            limit = self.config.default_limit
        if limit <= 0 or not query:
            return ()

        if len(query) > self.config.max_query_length:
            logger.debug(f"Truncating query to {self.config.max_query_length} chars")
            query = query[:self.config.max_query_length]

        folded = fold_query(query)
        if not folded:
            return ()

        self._metrics.increment_counter("search.queries")
        cache_key = (folded, limit)
        cached = self._cache.get(cache_key)
        if cached is not None:
            self._cache.move_to_end(cache_key)
            self._metrics.increment_counter("search.cache_hits")
            return cached

        with LatencyTimer("search", self._metrics) as timer:
            results = self._rank(folded, limit)

        logger.debug(
            f"Search {query!r}: {len(results)} results from {len(self._entries)} items "
            f"in {timer.elapsed_us:.0f}us"
        )
        self._remember(cache_key, results)
        return results

    def _rank(self, folded_query: str, limit: int) -> Tuple[ScoredResult, ...]:
        matches = []
        for entry in self._entries.values():
            hit = score_candidate(
                self._matcher, entry.name, entry.path, entry.item.item_type, folded_query
            )
            if hit is None:
                continue
            score, matched_field, indices = hit
            item = entry.item
            sort_key = (-score, entry.name.text, item.name, item.id)
            matches.append((sort_key, score, matched_field, indices, item))

        top = heapq.nsmallest(limit, matches, key=itemgetter(0))
        return tuple(
            ScoredResult(
                id=item.id,
                name=item.name,
                path=item.path,
                score=score,
                item_type=item.item_type,
                matched_field=matched_field,
                match_indices=indices,
            )
            for _, score, matched_field, indices, item in top
        )

    def _remember(self, key: Tuple[str, int], results: Tuple[ScoredResult, ...]) -> None:
        if self.config.cache_size <= 0:
            return
        self._cache[key] = results
        self._cache.move_to_end(key)
        while len(self._cache) > self.config.cache_size:
            self._cache.popitem(last=False)

    def stats(self) -> IndexStats:
        return IndexStats(
            total=len(self._entries),
            applications=self._counts[ItemType.APPLICATION],
            files=self._counts[ItemType.FILE],
            snippets=self._counts[ItemType.SNIPPET],
            clipboard_entries=self._counts[ItemType.CLIPBOARD_ENTRY],
        )

    def get_item(self, id: str) -> Optional[IndexedItem]:
        entry = self._entries.get(id)
        return entry.item if entry is not None else None

    def items_by_type(self, item_type) -> List[IndexedItem]:
        target = ItemType.parse(item_type)
        return [e.item for e in self._entries.values() if e.item.item_type is target]

    def items(self) -> List[IndexedItem]:
        return [e.item for e in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, id: object) -> bool:
        return id in self._entries
