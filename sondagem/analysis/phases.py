"""Phase taxonomies and free-text label normalisation.

Phase labels reach the tracker from three places: the classification oracle,
spreadsheet imports and manual edits.  None of them can be trusted to spell a
phase exactly like the canonical taxonomy, so every label goes through:

1. ``normalize`` (uppercase, strip accents, trim)
2. an exact lookup keyed by the normalised canonical value
3. a table of known locale / gender variants
4. substring matching in both directions

Labels that match nothing are returned untouched so a classification is never
silently dropped.
"""

from __future__ import annotations

import logging
import unicodedata
from enum import Enum

logger = logging.getLogger(__name__)


class AssessmentType(str, Enum):
    DRAWING = 'DESENHO'
    WRITING = 'ESCRITA'
    PHONOLOGICAL = 'FONOLOGICA'
    MEMORY = 'MEMORIA'
    MATH = 'MATEMATICA'
    READING = 'LEITURA'


PERIODS: tuple[str, ...] = ('Inicial', '1º Bim', '2º Bim', '3º Bim', '4º Bim')

PENDING_PHASE = 'Pendente'

SITUATIONS: tuple[str, ...] = ('Normal', 'Atrasado', 'Adiantado')


def normalize(label: str | None) -> str:
    """Uppercase, drop diacritics (NFD + combining marks removed) and trim."""
    if not label:
        return ''
    decomposed = unicodedata.normalize('NFD', str(label).upper())
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip()


class PhaseTaxonomy:
    """An ordered set of canonical phases for one assessment domain.

    Args:
        domain: The AssessmentType this taxonomy classifies.
        phases: Canonical phase labels, least advanced first.
        aliases: Extra spellings (any case/accents) mapped to canonical labels.
    """

    def __init__(self, domain: AssessmentType, phases: list[str],
                 aliases: dict[str, str] | None = None):
        self.domain = domain
        self.phases = tuple(phases)
        self._rank = {phase: index for index, phase in enumerate(self.phases)}
        self._by_normalized = {normalize(phase): phase for phase in self.phases}
        self._aliases = {normalize(k): v for k, v in (aliases or {}).items()}

    @property
    def lowest(self) -> str:
        return self.phases[0]

    @property
    def highest(self) -> str:
        return self.phases[-1]

    def __contains__(self, phase: str) -> bool:
        return phase in self._rank

    def __iter__(self):
        return iter(self.phases)

    def rank(self, phase: str | None) -> int:
        """Severity index of a canonical phase; -1 for anything else."""
        if phase is None:
            return -1
        return self._rank.get(phase, -1)

    def canonicalize(self, label: str | None) -> str | None:
        """Map a free-text label to its canonical phase, or return it unchanged."""
        key = normalize(label)
        if not key:
            return label

        found = self._by_normalized.get(key) or self._aliases.get(key)
        if found:
            return found

        # Canonical value embedded in a longer label ("Fase: Esquematismo")
        contained = [
            phase for norm, phase in self._by_normalized.items() if norm in key
        ]
        if contained:
            return max(contained, key=lambda p: (len(normalize(p)), -self._rank[p]))

        # Truncated label ("Garatuja", "Alfabetica")
        for norm, phase in self._by_normalized.items():
            if key in norm:
                return phase

        logger.debug(f'Unmatched {self.domain.value} phase label: {label!r}')
        return label


DRAWING_TAXONOMY = PhaseTaxonomy(
    AssessmentType.DRAWING,
    [
        'Garatuja Desordenada',
        'Garatuja Ordenada',
        'Pré-Esquematismo',
        'Esquematismo',
        'Realismo',
        'Pseudo-Naturalismo',
    ],
    aliases={
        'Garatuja Desorganizada': 'Garatuja Desordenada',
        'Garatuja Organizada': 'Garatuja Ordenada',
        'Pré Esquematismo': 'Pré-Esquematismo',
        'Preesquematismo': 'Pré-Esquematismo',
        'Pré-Esquemático': 'Pré-Esquematismo',
        'Esquemático': 'Esquematismo',
        'Realismo Nascente': 'Realismo',
        'Pseudo Naturalismo': 'Pseudo-Naturalismo',
        'Pseudonaturalismo': 'Pseudo-Naturalismo',
    },
)

WRITING_TAXONOMY = PhaseTaxonomy(
    AssessmentType.WRITING,
    [
        'Pré-Alfabética',
        'Alfabética Parcial',
        'Alfabética Completa',
        'Alfabética Consolidada',
    ],
    aliases={
        'Pré Alfabética': 'Pré-Alfabética',
        'Pré-Alfabético': 'Pré-Alfabética',
        'Pré Alfabético': 'Pré-Alfabética',
        'Prealfabética': 'Pré-Alfabética',
        'Alfabético Parcial': 'Alfabética Parcial',
        'Alfabético Completo': 'Alfabética Completa',
        'Alfabética Completo': 'Alfabética Completa',
        'Alfabético Consolidado': 'Alfabética Consolidada',
    },
)

TAXONOMIES: dict[AssessmentType, PhaseTaxonomy] = {
    AssessmentType.DRAWING: DRAWING_TAXONOMY,
    AssessmentType.WRITING: WRITING_TAXONOMY,
}

# Domains that carry one phase per period (and therefore a store column each)
PHASED_TYPES: tuple[AssessmentType, ...] = (AssessmentType.DRAWING, AssessmentType.WRITING)


def taxonomy_for(domain: AssessmentType | str) -> PhaseTaxonomy:
    """Return the taxonomy for a domain, accepting enum members or raw values."""
    domain = AssessmentType(domain)
    try:
        return TAXONOMIES[domain]
    except KeyError:
        raise ValueError(f'{domain.value} has no phase taxonomy') from None


def canonicalize(label: str | None, domain: AssessmentType | str) -> str | None:
    """Canonical phase for ``label`` in ``domain``, or ``label`` unchanged."""
    return taxonomy_for(domain).canonicalize(label)


def is_pending(phase: str | None) -> bool:
    """True for blank phases and the 'Pendente' sentinel, which count as absent."""
    key = normalize(phase)
    return not key or key == normalize(PENDING_PHASE)
