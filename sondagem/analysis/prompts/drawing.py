"""
Prompt for classifying a child's drawing from a photo.
"""
from __future__ import annotations

from sondagem.analysis.phases import DRAWING_TAXONOMY
from .criteria import phase_list, system_instruction


def build_drawing_prompt(provider, image_b64: str, media_type: str = 'image/jpeg') -> list[dict]:
    """Build prompt messages for drawing-stage classification.

    Args:
        provider: LLM provider, used to format the image block.
        image_b64: Base64-encoded photo of the drawing.
        media_type: MIME type of the photo.

    Returns:
        List of message dicts for LLM chat API.
    """
    user_text = f"""Analise este desenho com extremo rigor técnico, distinguindo entre Garatuja Desordenada e Ordenada, ou Realismo e Pseudo-Naturalismo, conforme os critérios.

Responda SOMENTE com um objeto JSON, sem texto adicional:
{{
  "phase": uma de [{phase_list(DRAWING_TAXONOMY)}],
  "ageRange": "faixa etária típica da fase",
  "confidence": número entre 0 e 1,
  "reasoning": "justificativa técnica",
  "summary": "resumo para o professor",
  "recommendedActivities": "atividades sugeridas",
  "markers": [{{"label": "...", "description": "...", "match": true}}]
}}"""

    return [
        {'role': 'system', 'content': system_instruction()},
        provider.image_message(user_text, image_b64, media_type),
    ]
