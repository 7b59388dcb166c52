"""Text folding and fuzzy subsequence scoring for the search index."""

import unicodedata
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .models import ItemType


@dataclass(frozen=True)
class FoldedText:
    """A string folded for matching, with a map back to the original.

    ``positions[i]`` is the offset in ``original`` of the character that
    produced ``text[i]``. One original character can fold to several
    characters (``"ß"`` becomes ``"ss"``) or to none (a lone combining mark).
    """
    original: str
    text: str
    positions: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.text)


def fold_text(text: str) -> FoldedText:
    """
    Fold text for case and diacritic insensitive comparison.

    Each character is NFKD-decomposed, combining marks are dropped and the
    remainder is case folded. ASCII takes a fast path.
    """
    chars = []
    positions = []
    for offset, ch in enumerate(text):
        if ch.isascii():
            folded = ch.lower()
        else:
            decomposed = unicodedata.normalize("NFKD", ch)
            folded = "".join(
                c for c in decomposed if not unicodedata.combining(c)
            ).casefold()
        for c in folded:
            chars.append(c)
            positions.append(offset)
    return FoldedText(original=text, text="".join(chars), positions=tuple(positions))


def fold_query(query: str) -> str:
    """Fold a query string. Outer whitespace is not significant."""
    return fold_text(query.strip()).text


@dataclass(frozen=True)
class FuzzyMatch:
    """Score and matched character offsets (in the original string)."""
    score: int
    indices: Tuple[int, ...]


class FuzzyMatcher:
    """
    Ordered subsequence matcher with launcher-style ranking.

    score = sum(per char: MATCH + boundary bonus + gap penalty)
          + exact/prefix/substring bonus
          + FIRST_CHAR_BONUS if the match starts the candidate
          + CONSECUTIVE_BONUS * consecutive pairs
          - LENGTH_PENALTY * (len(candidate) - len(query))
    """

    SCORE_MATCH = 16
    BONUS_BOUNDARY = 8
    BONUS_CAMEL = 7
    PENALTY_GAP_START = -3
    PENALTY_GAP_EXTENSION = -1

    EXACT_BONUS = 10000
    PREFIX_BONUS = 5000
    SUBSTRING_BONUS = 2500
    FIRST_CHAR_BONUS = 2000
    CONSECUTIVE_BONUS = 100
    LENGTH_PENALTY = 10

    SEPARATORS = frozenset(" /\\-_.:")

    def match(self, candidate: str, query: str) -> Optional[FuzzyMatch]:
        """Match raw strings. Convenience wrapper around match_folded."""
        return self.match_folded(fold_text(candidate), fold_query(query))

    def match_folded(self, candidate: FoldedText, query: str) -> Optional[FuzzyMatch]:
        """Match a pre-folded candidate against a pre-folded query."""
        haystack = candidate.text
        if not query or len(query) > len(haystack):
            return None

        substring_at = self._find_substring(candidate, query)
        if substring_at >= 0:
            positions = tuple(range(substring_at, substring_at + len(query)))
        else:
            positions = self._subsequence_positions(haystack, query)
            if positions is None:
                return None

        score = self._base_score(candidate, positions)

        if haystack == query:
            score += self.EXACT_BONUS
        if substring_at == 0:
            score += self.PREFIX_BONUS
        elif substring_at > 0:
            score += self.SUBSTRING_BONUS

        if positions[0] == 0:
            score += self.FIRST_CHAR_BONUS

        consecutive = sum(
            1 for a, b in zip(positions, positions[1:]) if b == a + 1
        )
        score += consecutive * self.CONSECUTIVE_BONUS
        score -= (len(haystack) - len(query)) * self.LENGTH_PENALTY

        indices = tuple(sorted({candidate.positions[p] for p in positions}))
        return FuzzyMatch(score=score, indices=indices)

    def _find_substring(self, candidate: FoldedText, query: str) -> int:
        """Earliest occurrence of query that starts a word, else the earliest one (-1 if none)."""
        haystack = candidate.text
        first = haystack.find(query)
        at = first
        while at > 0:
            if self._boundary_bonus(candidate, at):
                return at
            at = haystack.find(query, at + 1)
        return first

    @staticmethod
    def _subsequence_positions(haystack: str, query: str) -> Optional[Tuple[int, ...]]:
        """
        Find a compact subsequence occurrence of query in haystack.

        A forward pass finds where the earliest complete match ends; a
        backward pass from there picks the latest start, which gives the
        shortest window ending at that position.
        """
        qi = 0
        end = -1
        for hi, ch in enumerate(haystack):
            if ch == query[qi]:
                qi += 1
                if qi == len(query):
                    end = hi
                    break
        if end < 0:
            return None

        positions = []
        qi = len(query) - 1
        for hi in range(end, -1, -1):
            if haystack[hi] == query[qi]:
                positions.append(hi)
                qi -= 1
                if qi < 0:
                    break
        positions.reverse()
        return tuple(positions)

    def _base_score(self, candidate: FoldedText, positions: Tuple[int, ...]) -> int:
        score = 0
        prev = None
        for n, pos in enumerate(positions):
            char_score = self.SCORE_MATCH
            bonus = self._boundary_bonus(candidate, pos)
            if n == 0:
                bonus *= 2
            if prev is not None:
                gap = pos - prev - 1
                if gap > 0:
                    char_score += self.PENALTY_GAP_START + self.PENALTY_GAP_EXTENSION * (gap - 1)
            score += char_score + bonus
            prev = pos
        return score

    def _boundary_bonus(self, candidate: FoldedText, pos: int) -> int:
        offset = candidate.positions[pos]
        # only the first folded char of an original char sits on a boundary
        if pos > 0 and candidate.positions[pos - 1] == offset:
            return 0
        if offset == 0:
            return self.BONUS_BOUNDARY
        current = candidate.original[offset]
        previous = candidate.original[offset - 1]
        if previous in self.SEPARATORS:
            return self.BONUS_BOUNDARY
        if current.isupper() and previous.islower():
            return self.BONUS_CAMEL
        if current.isdigit() and not previous.isdigit():
            return self.BONUS_CAMEL
        return 0


# Launchers surface applications first, then snippets, then files.
TYPE_WEIGHTS: Dict[ItemType, int] = {
    ItemType.APPLICATION: 150,
    ItemType.SNIPPET: 100,
    ItemType.FILE: 50,
    ItemType.CLIPBOARD_ENTRY: 0,
}

_unweighted = set(ItemType) - set(TYPE_WEIGHTS)
if _unweighted:
    raise RuntimeError(f"Missing ranking weight for item types: {sorted(_unweighted)}")

PATH_PENALTY = 1000


def score_candidate(
    matcher: FuzzyMatcher,
    name: FoldedText,
    path: FoldedText,
    item_type: ItemType,
    query: str,
) -> Optional[Tuple[int, str, Tuple[int, ...]]]:
    """
    Score one item against a folded query.

    Returns (score, matched_field, indices) or None when neither the name
    nor the path matches. A path match is halved and offset by PATH_PENALTY
    so it ranks below any comparable name match.
    """
    best = None

    name_match = matcher.match_folded(name, query)
    if name_match is not None:
        best = (name_match.score, "name", name_match.indices)

    path_match = matcher.match_folded(path, query)
    if path_match is not None:
        path_score = path_match.score // 2 - PATH_PENALTY
        if best is None or path_score > best[0]:
            best = (path_score, "path", path_match.indices)

    if best is None:
        return None

    score, field_name, indices = best
    return score + TYPE_WEIGHTS[item_type], field_name, indices
