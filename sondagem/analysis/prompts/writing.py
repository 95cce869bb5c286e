"""
Prompt for classifying a dictation word by word.

Each dictated target word is paired with what the child wrote; the model
classifies every pair independently and the predominant phase is computed
locally from the breakdown.
"""
from __future__ import annotations

from sondagem.analysis.phases import WRITING_TAXONOMY
from .criteria import phase_list, system_instruction

MISSING_WORD = '???'


def pair_words(produced_words: list[str], target_words: list[str]) -> list[tuple[str, str]]:
    """Pair each target with the produced word at the same position."""
    return [
        (target, produced_words[i] if i < len(produced_words) else MISSING_WORD)
        for i, target in enumerate(target_words)
    ]


def build_writing_prompt(produced_words: list[str], target_words: list[str]) -> list[dict]:
    """Build prompt messages for a word-by-word writing classification."""
    pairs = pair_words(produced_words, target_words)
    pair_lines = '\n'.join(
        f'{i}. ALVO: "{target}" | ESCRITA: "{produced}"'
        for i, (target, produced) in enumerate(pairs, start=1)
    )
    consolidated, complete, partial, pre = reversed(WRITING_TAXONOMY.phases)

    user_text = f"""Analise as seguintes produções de escrita uma a uma:

{pair_lines}

INSTRUÇÕES OBRIGATÓRIAS:
1. Analise cada um dos {len(pairs)} pares de forma INDEPENDENTE.
2. Atribua a fase de Ehri correta para CADA palavra em "wordBreakdown".
3. NÃO copie a classificação da primeira palavra para as outras se os desempenhos forem diferentes.

CRITÉRIO DE DISTINÇÃO:
- Escrita exatamente igual ao alvo ditado: "{consolidated}".
- Todos os sons representados, com erros ortográficos: "{complete}".
- Apenas pistas fonéticas parciais: "{partial}".
- Sem relação fonética: "{pre}".

Responda SOMENTE com um objeto JSON, sem texto adicional:
{{
  "phase": uma de [{phase_list(WRITING_TAXONOMY)}],
  "confidence": número entre 0 e 1,
  "reasoning": "...",
  "summary": "...",
  "wordBreakdown": [
    {{"target": "...", "produced": "...", "phase": "...", "explanation": "..."}}
  ]
}}"""

    return [
        {'role': 'system', 'content': system_instruction()},
        {'role': 'user', 'content': user_text},
    ]
