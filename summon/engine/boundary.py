"""
Host boundary adapter: opaque handles and caller-owned result buffers.

The host talks to the engines only through the functions in this module.
Engines live in a process-wide HandleRegistry and are addressed by integer
handles. Variable-length results are handed over as buffers the caller owns
and must release exactly once; reading a released buffer or releasing it a
second time raises BufferReleasedError.

Caller errors (unknown handles, strings that are not valid UTF-8, malformed
rule payloads) are logged and reported as False / None, never raised.
"""

import itertools
import threading
from typing import Dict, Iterator, Optional, Tuple, Type, Union

from loguru import logger

from .config import SearchConfig
from .errors import BufferReleasedError, EncodingError, InvalidHandleError
from .index import SearchIndex
from .models import MatchResult, ScoredResult
from .triggers import TriggerMatcher

BoundaryString = Union[str, bytes, bytearray]


def decode_string(value: object, field_name: str) -> str:
    """Accept str or UTF-8 bytes from the host."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError(f"{field_name} is not valid UTF-8: {e}") from e
    raise EncodingError(f"{field_name} must be a string, got {type(value).__name__}")


class ResultBuffer:
    """Caller-owned snapshot of one search call."""

    def __init__(self, results: Tuple[ScoredResult, ...] = ()):
        self._results: Optional[Tuple[ScoredResult, ...]] = tuple(results)

    def _live(self) -> Tuple[ScoredResult, ...]:
        if self._results is None:
            raise BufferReleasedError("Search result buffer used after release")
        return self._results

    @property
    def results(self) -> Tuple[ScoredResult, ...]:
        return self._live()

    @property
    def count(self) -> int:
        return len(self._live())

    @property
    def released(self) -> bool:
        return self._results is None

    def release(self) -> None:
        if self._results is None:
            raise BufferReleasedError("Search result buffer released twice")
        self._results = None

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[ScoredResult]:
        return iter(self._live())

    def __getitem__(self, index: int) -> ScoredResult:
        return self._live()[index]


class MatchBuffer:
    """Caller-owned copy of a trigger match."""

    def __init__(self, match: MatchResult):
        self._match: Optional[MatchResult] = match

    def _live(self) -> MatchResult:
        if self._match is None:
            raise BufferReleasedError("Trigger match used after release")
        return self._match

    @property
    def trigger(self) -> str:
        return self._live().trigger

    @property
    def content(self) -> str:
        return self._live().content

    @property
    def match_end(self) -> int:
        return self._live().match_end

    @property
    def match(self) -> MatchResult:
        return self._live()

    @property
    def released(self) -> bool:
        return self._match is None

    def release(self) -> None:
        if self._match is None:
            raise BufferReleasedError("Trigger match released twice")
        self._match = None


class HandleRegistry:
    """
    Table of live engines keyed by opaque integer handles.

    The lock guards the table only. Calls against one engine must still be
    serialized by the host.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._engines: Dict[int, object] = {}
        self._ids = itertools.count(1)

    def register(self, engine: object) -> int:
        with self._lock:
            handle = next(self._ids)
            self._engines[handle] = engine
        logger.debug(f"Registered {type(engine).__name__} as handle {handle}")
        return handle

    def get(self, handle: int, kind: Type) -> object:
        with self._lock:
            engine = self._engines.get(handle)
        if not isinstance(engine, kind):
            raise InvalidHandleError(f"Handle {handle!r} is not a live {kind.__name__}")
        return engine

    def release(self, handle: int) -> bool:
        with self._lock:
            engine = self._engines.pop(handle, None)
        if engine is None:
            logger.warning(f"Ignoring release of unknown handle {handle!r}")
            return False
        return True

    def clear(self) -> None:
        with self._lock:
            self._engines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)


_default_registry: Optional[HandleRegistry] = None
_default_registry_lock = threading.Lock()


def default_registry() -> HandleRegistry:
    """Process-wide registry, created on first use."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = HandleRegistry()
        return _default_registry


def reset_default_registry() -> None:
    """Drop every live engine and the process-wide registry itself."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is not None:
            _default_registry.clear()
        _default_registry = None


# Search index

def search_engine_new(config: Optional[SearchConfig] = None) -> Optional[int]:
    try:
        return default_registry().register(SearchIndex(config))
    except MemoryError:
        logger.critical("Out of memory creating search index")
        return None


def search_engine_free(handle: int) -> None:
    default_registry().release(handle)


def search_engine_add_item(
    handle: int,
    id: BoundaryString,
    name: BoundaryString,
    path: BoundaryString,
    item_type: int,
) -> bool:
    try:
        index = default_registry().get(handle, SearchIndex)
        fields = (
            decode_string(id, "id"),
            decode_string(name, "name"),
            decode_string(path, "path"),
        )
    except (InvalidHandleError, EncodingError) as e:
        logger.warning(f"search_engine_add_item: {e}")
        return False
    return index.add_item(*fields, item_type)


def search_engine_search(
    handle: int,
    query: BoundaryString,
    limit: int,
) -> Optional[ResultBuffer]:
    """Ranked results as a caller-owned buffer; None on caller error."""
    try:
        index = default_registry().get(handle, SearchIndex)
        text = decode_string(query, "query")
    except (InvalidHandleError, EncodingError) as e:
        logger.warning(f"search_engine_search: {e}")
        return None
    if isinstance(limit, bool) or not isinstance(limit, int):
        logger.warning(f"search_engine_search: limit must be an int, got {limit!r}")
        return None
    try:
        return ResultBuffer(index.search(text, max(limit, 0)))
    except MemoryError:
        logger.critical("Out of memory building search results")
        return None


def search_results_free(buffer: ResultBuffer) -> None:
    buffer.release()


def search_engine_stats(handle: int) -> Optional[Tuple[int, int, int, int]]:
    """(total, applications, files, snippets), or None for a bad handle."""
    try:
        index = default_registry().get(handle, SearchIndex)
    except InvalidHandleError as e:
        logger.warning(f"search_engine_stats: {e}")
        return None
    return index.stats().as_tuple()


# Trigger matcher

def snippet_matcher_new() -> Optional[int]:
    try:
        return default_registry().register(TriggerMatcher())
    except MemoryError:
        logger.critical("Out of memory creating trigger matcher")
        return None


def snippet_matcher_free(handle: int) -> None:
    default_registry().release(handle)


def snippet_matcher_update(handle: int, payload: BoundaryString) -> bool:
    try:
        matcher = default_registry().get(handle, TriggerMatcher)
        document = decode_string(payload, "payload")
    except (InvalidHandleError, EncodingError) as e:
        logger.warning(f"snippet_matcher_update: {e}")
        return False
    return matcher.update(document)


def snippet_matcher_find(handle: int, text: BoundaryString) -> Optional[MatchBuffer]:
    """The best match as a caller-owned buffer, or None for no match."""
    try:
        matcher = default_registry().get(handle, TriggerMatcher)
        decoded = decode_string(text, "text")
    except (InvalidHandleError, EncodingError) as e:
        logger.warning(f"snippet_matcher_find: {e}")
        return None
    match = matcher.find(decoded)
    return MatchBuffer(match) if match is not None else None


def snippet_match_free(buffer: MatchBuffer) -> None:
    buffer.release()
