"""
Duplicate supplier detection.

Flags pairs of supplier identities that probably denote the same vendor:
  1. Both sides carry a VAT number  -> duplicate iff the VAT numbers are equal.
     Differing VAT numbers are never flagged, however similar the names.
  2. Otherwise                      -> duplicate if one normalised name contains
     the other, or their bigram Dice similarity exceeds the threshold.

Also ranks persisted suppliers as merge targets for a given source, using
rapidfuzz so operators get a sensible shortlist even when the detector
did not flag the pair.
"""
import logging
from collections import Counter
from itertools import combinations
from typing import Iterable, Optional

from rapidfuzz import fuzz

from models.result import MergeCandidate
from models.supplier import PersistedSupplier, SupplierIdentity

logger = logging.getLogger(__name__)

# Minimum Dice similarity (exclusive) for a name-based duplicate
SIMILARITY_THRESHOLD = 0.80


def _normalise(value: Optional[str]) -> str:
    """Trim and lowercase; None becomes the empty string."""
    return (value or "").strip().lower()


def bigrams(text: str) -> list[str]:
    """All consecutive 2-character substrings, repeats included."""
    return [text[i:i + 2] for i in range(len(text) - 1)]


def bigram_similarity(a: str, b: str) -> float:
    """
    Dice coefficient over bigram multisets: 2 * |A ∩ B| / (|A| + |B|).

    Each bigram in *a* is matched against at most one occurrence in *b*,
    so names with repeated letter pairs are not overcounted.
    """
    bigrams_a = bigrams(a)
    bigrams_b = bigrams(b)
    total = len(bigrams_a) + len(bigrams_b)
    if total == 0:
        return 0.0
    overlap = sum((Counter(bigrams_a) & Counter(bigrams_b)).values())
    return 2.0 * overlap / total


def duplicate_reason(
    a: SupplierIdentity,
    b: SupplierIdentity,
    threshold: float = SIMILARITY_THRESHOLD,
) -> Optional[str]:
    """
    Return why *a* and *b* look like the same supplier, or None if they don't.
    """
    vat_a = _normalise(a.vat_number)
    vat_b = _normalise(b.vat_number)
    if vat_a and vat_b:
        # VAT is authoritative when both sides have one
        return "vat_exact" if vat_a == vat_b else None

    name_a = _normalise(a.name)
    name_b = _normalise(b.name)
    if not name_a or not name_b:
        return None
    if name_a in name_b or name_b in name_a:
        return "name_substring"
    if bigram_similarity(name_a, name_b) > threshold:
        return "name_similar"
    return None


def detect_duplicates(
    identities: Iterable[SupplierIdentity],
    threshold: float = SIMILARITY_THRESHOLD,
) -> set[str]:
    """
    Compare every unordered pair and return the identity keys (persisted id,
    or name for inferred suppliers) of all identities in a flagged pair.

    O(k²) in the number of identities; fine for the few hundred suppliers
    an organisation has.
    """
    flagged: set[str] = set()
    for a, b in combinations(list(identities), 2):
        reason = duplicate_reason(a, b, threshold)
        if reason:
            logger.debug("Possible duplicate (%s): %r <-> %r", reason, a.name, b.name)
            flagged.add(a.identity_key)
            flagged.add(b.identity_key)
    return flagged


def suggest_merge_targets(
    source: SupplierIdentity,
    identities: Iterable[SupplierIdentity],
    threshold: int = 60,
    limit: int = 5,
) -> list[MergeCandidate]:
    """
    Rank the persisted suppliers a *source* identity could be merged into.

    Equal VAT numbers score 100; otherwise the rapidfuzz token_sort_ratio of
    the normalised names is used. Differing VAT numbers exclude a candidate.
    """
    source_name = _normalise(source.name)
    source_vat = _normalise(source.vat_number)
    candidates: list[MergeCandidate] = []

    for identity in identities:
        if not isinstance(identity, PersistedSupplier):
            continue
        if identity.identity_key == source.identity_key or identity.name == source.name:
            continue

        vat = _normalise(identity.vat_number)
        if source_vat and vat:
            if source_vat != vat:
                continue
            candidates.append(MergeCandidate(supplier=identity, match_method="vat_exact", score=100))
            continue

        score = int(round(fuzz.token_sort_ratio(source_name, _normalise(identity.name))))
        if score >= threshold:
            candidates.append(MergeCandidate(supplier=identity, match_method="name_fuzzy", score=score))

    candidates.sort(key=lambda c: (-c.score, c.supplier.name))
    logger.debug(
        "Merge suggestions for %r: %s",
        source.name, [(c.supplier.name, c.score) for c in candidates[:limit]],
    )
    return candidates[:limit]
