"""
Fuzzy mapping of arbitrary spreadsheet headers onto canonical fields.
"""
import itertools
from typing import Dict, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from ordersync.config import config
from ordersync.vocabulary import vocabulary


CANONICAL_FIELDS = ("title", "sku", "price", "link")

EXACT_SCORE = 1.0
CONTAINMENT_SCORE = 0.8
# Candidates kept per field; with four fields the optimum always lies in each field's top four
_CANDIDATES_PER_FIELD = len(CANONICAL_FIELDS)


def calculate_similarity(first: str, second: str) -> float:
    """
    Header similarity in [0, 1].
    Exact match is 1, substring containment 0.8, otherwise 1 - edit_distance / max_len.
    """
    s1 = first.lower().strip()
    s2 = second.lower().strip()

    if s1 == s2:
        return EXACT_SCORE
    if not s1 or not s2:
        return 0.0
    if s1 in s2 or s2 in s1:
        return CONTAINMENT_SCORE

    return Levenshtein.normalized_similarity(s1, s2)


def score_header(field_name: str, header: str) -> float:
    synonyms = vocabulary.csv_field_synonyms.get(field_name, ())
    normalized = header.lower().strip()
    if normalized in synonyms:
        return EXACT_SCORE
    return max((calculate_similarity(header, s) for s in synonyms), default=0.0)


def _candidates(headers: Sequence[str], threshold: float) -> Dict[str, List[Tuple[str, float]]]:
    candidates = {}
    for field_name in CANONICAL_FIELDS:
        scored = [(h, score_header(field_name, h)) for h in headers]
        scored = [(h, s) for h, s in scored if s >= threshold]
        # Stable: equal scores keep the column order of the file
        scored.sort(key=lambda hs: -hs[1])
        candidates[field_name] = scored
    return candidates


def auto_map_headers(
    headers: Sequence[str],
    threshold: Optional[float] = None,
    exclusive: bool = True,
) -> Dict[str, Optional[str]]:
    """
    Map each canonical field to its best-matching CSV header, or None.

    Args:
        headers: Header row of the CSV file
        threshold: Minimum similarity (default HEADER_MATCH_THRESHOLD)
        exclusive: When True a header can back at most one field and the
            assignment maximizes the total similarity; when False every
            field independently takes its best header.
    """
    threshold = config.HEADER_MATCH_THRESHOLD if threshold is None else threshold
    candidates = _candidates(list(headers), threshold)

    if not exclusive:
        return {f: (candidates[f][0][0] if candidates[f] else None) for f in CANONICAL_FIELDS}

    options = [
        candidates[f][:_CANDIDATES_PER_FIELD] + [(None, 0.0)]
        for f in CANONICAL_FIELDS
    ]

    best_total = -1.0
    best_assignment: Tuple[Tuple[Optional[str], float], ...] = tuple((None, 0.0) for _ in CANONICAL_FIELDS)
    for assignment in itertools.product(*options):
        chosen = [h for h, _ in assignment if h is not None]
        if len(chosen) != len(set(chosen)):
            continue
        total = sum(s for _, s in assignment)
        if total > best_total + 1e-9:
            best_total = total
            best_assignment = assignment

    return {f: h for f, (h, _) in zip(CANONICAL_FIELDS, best_assignment)}


def mapping_confidence(field_name: str, header: Optional[str]) -> str:
    """Label for how sure we are about a single field mapping."""
    if not header:
        return "Not mapped"

    if header.lower().strip() in vocabulary.csv_field_synonyms.get(field_name, ()):
        return "Exact match"

    score = score_header(field_name, header)
    if score >= 0.8:
        return "High confidence"
    if score >= 0.6:
        return "Medium confidence"
    return "Low confidence"
