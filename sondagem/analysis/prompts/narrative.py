"""
Prompt for the narrative pedagogical report of one student.

The history is serialized compactly (period, domain, phase, summary) so the
prompt stays small for students with many assessments.
"""
from __future__ import annotations

import json

from .criteria import system_instruction


def _history_rows(history) -> list[dict]:
    rows = []
    for a in history:
        rows.append({
            'data': (a.date or '')[:10],
            'periodo': a.period or '',
            'tipo': a.type.value,
            'fase': a.phase or '',
            'resumo': a.summary or '',
        })
    return rows


def build_narrative_prompt(student_name: str, history) -> list[dict]:
    """Build prompt messages for a narrative report.

    Args:
        student_name: Display name of the student.
        history: AssessmentResult records, newest first.

    Returns:
        List of message dicts for LLM chat API.
    """
    history_json = json.dumps(_history_rows(history), ensure_ascii=False, indent=2)
    user_text = f"""Gere um parecer pedagógico para {student_name} baseado nestas sondagens:

{history_json}

Descreva a evolução entre os períodos, a fase atual em desenho e em escrita, e
sugestões de intervenção. Escreva em português, em prosa corrida.

Responda SOMENTE com um objeto JSON, sem texto adicional:
{{
  "text": "o parecer completo",
  "sources": [{{"title": "referência bibliográfica", "uri": "https://..."}}]
}}"""

    return [
        {'role': 'system', 'content': system_instruction()},
        {'role': 'user', 'content': user_text},
    ]
