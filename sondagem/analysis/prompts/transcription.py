"""
Prompt for reading handwritten words off a photo.
"""
from __future__ import annotations


def build_transcription_prompt(provider, image_b64: str, media_type: str = 'image/jpeg') -> list[dict]:
    return [
        provider.image_message(
            'Extraia o texto manuscrito desta imagem. Retorne apenas as palavras '
            'em maiúsculas separadas por espaço, sem corrigir a ortografia.',
            image_b64,
            media_type,
        ),
    ]
