"""
Predominant phase of a multi-item assessment.

A writing dictation yields one phase per word; the event as a whole is
recorded under the most frequent phase.  Ties go to the more advanced phase,
so a child showing mixed evidence on a short word list is not
under-classified.
"""
from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

from .phases import AssessmentType, normalize, taxonomy_for


def _item_label(item) -> str | None:
    if isinstance(item, str) or item is None:
        return item
    if isinstance(item, Mapping):
        return item.get('phase')
    return getattr(item, 'phase', None)


def count_phases(items: Iterable, domain: AssessmentType = AssessmentType.WRITING) -> Counter:
    """Count canonicalized phases, ignoring items without a label."""
    taxonomy = taxonomy_for(domain)
    counts = Counter()
    for item in items or ():
        label = _item_label(item)
        if not normalize(label):
            continue
        counts[taxonomy.canonicalize(label)] += 1
    return counts


def predominant_phase(items: Iterable, domain: AssessmentType = AssessmentType.WRITING) -> str:
    """Return the single phase representing a group of per-item classifications.

    Args:
        items: Phase labels, mappings with a ``phase`` key, or objects with a
            ``phase`` attribute.
        domain: Taxonomy used to canonicalize and rank the labels.

    Returns:
        The most frequent canonical phase; on a tie the highest ranked one.
        An empty group yields the lowest phase of the taxonomy.
    """
    taxonomy = taxonomy_for(domain)
    counts = count_phases(items, domain)
    if not counts:
        return taxonomy.lowest

    top = max(counts.values())
    # Taxonomy order first, unmatched labels after, alphabetically
    candidates = sorted(
        (phase for phase, n in counts.items() if n == top),
        key=lambda p: (taxonomy.rank(p) < 0, taxonomy.rank(p), p),
    )
    if len(candidates) == 1:
        return candidates[0]

    winner = candidates[0]
    for phase in candidates[1:]:
        if taxonomy.rank(phase) > taxonomy.rank(winner):
            winner = phase
    return winner
