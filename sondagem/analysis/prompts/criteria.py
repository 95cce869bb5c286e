"""
Classification criteria shared by every sondagem prompt.

Drawing stages follow Lowenfeld / Piaget, writing phases follow Linnea Ehri.
The phase names are taken from the taxonomies so the model answers with
labels the normalizer resolves exactly.
"""
from __future__ import annotations

from sondagem.analysis.phases import DRAWING_TAXONOMY, WRITING_TAXONOMY

_DRAWING_CRITERIA = [
    'Impulsiva, sem limites, sem núcleo.',
    'Controle cinestésico, rítmica, presença de núcleo.',
    'Figuras flutuando, sem linha de base.',
    'Ordem rígida, linha de base única.',
    'Quebra da linha de base, 2D detalhado.',
    'Visão 3D, perspectiva técnica, luz e sombra.',
]

_WRITING_CRITERIA = [
    'A criança não compreende a conexão entre letras e sons. As letras escritas '
    'não possuem relação fonética com a palavra ditada (ex: ditado "BOLA", escrito "XRTZ").',
    'Início da conexão grafofonêmica. Pelo menos uma pista fonética clara, '
    'geralmente letra inicial ou final (ex: "BOLA" escrito "B" ou "BA").',
    'Todos os sons da palavra são representados, mas pode haver erros '
    'ortográficos (ex: "CASA" escrito "KAZA", "BOLA" escrito "BULA").',
    'Conhecimento ortográfico pleno. Se a palavra escrita for exatamente igual '
    'à ditada (ex: ditado "CASA", escrito "CASA"), a classificação é obrigatoriamente esta.',
]


def _numbered(phases, criteria) -> str:
    return '\n'.join(
        f'{i}. {phase.upper()}: {text}'
        for i, (phase, text) in enumerate(zip(phases, criteria), start=1)
    )


def system_instruction() -> str:
    """System prompt with both classification protocols."""
    return (
        'Você é uma autoridade em psicopedagogia clínica e neurociência cognitiva, '
        'especialista em desenvolvimento infantil e análise grafoplástica baseada '
        'em Viktor Lowenfeld e Jean Piaget. Sua tarefa é realizar sondagens '
        'diagnósticas baseadas no protocolo de 6 fases de desenho e 4 fases de '
        'escrita (Ehri).\n\n'
        '### CRITÉRIOS DE CLASSIFICAÇÃO (DESENHO) ###\n'
        f'{_numbered(DRAWING_TAXONOMY.phases, _DRAWING_CRITERIA)}\n\n'
        '### CRITÉRIOS DE CLASSIFICAÇÃO (ESCRITA, LINNEA EHRI) ###\n'
        f'{_numbered(WRITING_TAXONOMY.phases, _WRITING_CRITERIA)}'
    )


def phase_list(taxonomy) -> str:
    """Quoted, comma-separated canonical phases for enum-style instructions."""
    return ', '.join(f'"{phase}"' for phase in taxonomy.phases)
