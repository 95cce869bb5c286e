"""
Classification oracle.

Wraps the LLM provider registry with the four sondagem requests: drawing
classification from a photo, word-by-word writing classification,
handwriting transcription and the narrative report.  Every request goes
through ``_call``, which enforces the monthly budget, retries rate-limited
calls with exponential backoff and writes one ``OracleCall`` audit row.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from sondagem.exceptions import OracleFailure, TrackerError
from sondagem.extensions import db
from sondagem.models import OracleCall
from .llm import get_provider
from .llm.config import pick_model
from .phases import AssessmentType, WRITING_TAXONOMY, canonicalize
from .predominant import predominant_phase
from .prompts.drawing import build_drawing_prompt
from .prompts.narrative import build_narrative_prompt
from .prompts.transcription import build_transcription_prompt
from .prompts.writing import build_writing_prompt, pair_words

logger = logging.getLogger(__name__)

_PRE, _PARTIAL, _COMPLETE, _CONSOLIDATED = WRITING_TAXONOMY.phases

# Teaching suggestions per Ehri phase, attached to writing classifications
RECOMMENDED_ACTIVITIES = {
    _PRE: (
        'Consciência fonológica e conhecimento alfabético: reconhecer e nomear '
        'letras, explorar rimas e jogos de sons na fala, ler em voz alta para '
        'ampliar o vocabulário. O trabalho é dirigido à linguagem oral, sem '
        'exigir decodificação completa.'
    ),
    _PARTIAL: (
        'Ensino sistemático de letras e fonemas: destacar letras de início e fim '
        'das palavras, trocar a consoante inicial ("ato" para "mato, pato, rato") '
        'e ditados fonéticos aceitando grafias aproximadas.'
    ),
    _COMPLETE: (
        'Prática intensiva de decodificação: segmentação e fusão de sons, leitura '
        'em voz alta sílaba a sílaba e ditados fonéticos para fixar a conexão '
        'entre grafia e pronúncia, com palavras em contexto.'
    ),
    _CONSOLIDATED: (
        'Padrões ortográficos e consciência silábica e morfológica: dividir '
        'palavras longas em sílabas, montar famílias com prefixos e sufixos e '
        'ler textos com palavras complexas.'
    ),
}

# Dictation word lists offered to teachers, by word category
SUGGESTED_WORDS = {
    'Palavra de alta frequência': ['CACHORRO', 'CASA', 'CADEIRA', 'BOLA', 'CAMISA'],
    'Palavra de baixa frequência': ['ORNITORRINCO', 'ALCACHOFRA', 'CANDELABRO', 'GEADA', 'HELICÓPTERO'],
    'Palavra irregular': ['GENTE', 'IOGURTE', 'SOFÁ', 'XALE', 'ADVOGADO'],
    'Palavra regida por regras': ['PEIXE', 'PÃO', 'LÂMPADA', 'BONECA', 'SAPATO'],
    'Pseudopalavras': ['FRANECO', 'GRANISU', 'FALUME', 'BELUCO', 'LUMETRA'],
}


@dataclass
class DrawingClassification:
    phase: str
    confidence: float | None = None
    age_range: str = ''
    reasoning: str = ''
    summary: str = ''
    recommended_activities: str = ''
    markers: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class WordClassification:
    target: str
    produced: str
    phase: str
    explanation: str = ''


@dataclass
class WritingClassification:
    phase: str
    confidence: float | None = None
    reasoning: str = ''
    summary: str = ''
    recommended_activities: str = ''
    word_breakdown: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class NarrativeReport:
    text: str
    sources: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def parse_json_response(content: str) -> dict | None:
    """Parse an LLM reply as a JSON object, tolerating fences and chatter."""
    try:
        parsed = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        content = content or ''
        start = content.find('{')
        end = content.rfind('}')
        if start == -1 or end == -1:
            return None
        try:
            parsed = json.loads(content[start:end + 1])
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def _as_confidence(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _split_words(words) -> list[str]:
    if words is None:
        return []
    if isinstance(words, str):
        return words.split()
    return [w.strip() for w in words if w and w.strip()]


class PhaseOracle:
    """Classification requests against the configured LLM provider.

    Args:
        app: Flask application instance. If None, uses current_app.
        sleep: Backoff sleep function; tests pass a no-op.
    """

    API_KEY_CONFIG = {
        'claude': 'ANTHROPIC_API_KEY',
        'openai': 'OPENAI_API_KEY',
        'zhipu': 'ZHIPU_API_KEY',
    }

    def __init__(self, app=None, sleep=time.sleep):
        self.app = app or current_app._get_current_object()
        self._sleep = sleep

    def _get_llm(self, vision: bool = False):
        """Return (provider_instance, model_name) from app config."""
        provider_name = self.app.config.get('AI_PROVIDER', 'claude')
        api_key = self.app.config.get(self.API_KEY_CONFIG.get(provider_name, ''), '')
        try:
            provider = get_provider(provider_name, api_key=api_key, vision=vision)
        except ValueError as e:
            raise OracleFailure(str(e)) from e
        model = self.app.config.get('AI_MODEL') or pick_model(provider_name, vision=vision)
        return provider, model

    def _check_budget(self) -> bool:
        """True while this month's oracle spend is under AI_MONTHLY_BUDGET."""
        month_start = datetime.utcnow().replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        total_cost = (
            db.session.query(func.sum(OracleCall.cost_usd))
            .filter(OracleCall.created_at >= month_start)
            .scalar()
            or 0
        )
        return total_cost < self.app.config.get('AI_MONTHLY_BUDGET', 5.0)

    def _record_call(self, **fields):
        try:
            db.session.add(OracleCall(**fields))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to record oracle call ({fields.get('kind')}): {e}")

    def _call(self, kind: str, messages_for, vision: bool = False,
              max_tokens: int = 4096, student_code: str = None):
        """Send one request with rate-limit retries.

        Args:
            kind: Request label stored on the audit row.
            messages_for: Callable taking the provider and returning messages,
                so image blocks use the provider's own format.
            vision: Whether the request carries an image.
            max_tokens: Response budget.
            student_code: Optional student the request is about.

        Returns:
            The provider's LLMResponse.

        Raises:
            OracleFailure: Budget exhausted, retries exhausted, or any
                non-rate-limit provider error.
        """
        if not self._check_budget():
            logger.warning(f"AI monthly budget exceeded, refusing {kind} request")
            raise OracleFailure('Orçamento mensal de IA esgotado.')

        provider, model = self._get_llm(vision=vision)
        messages = messages_for(provider)
        max_attempts = max(1, int(self.app.config.get('ORACLE_MAX_ATTEMPTS', 3)))
        backoff = float(self.app.config.get('ORACLE_BACKOFF_BASE', 1.0))

        audit = {
            'kind': kind,
            'provider': provider.PROVIDER_NAME,
            'student_code': student_code,
        }
        started = time.time()

        for attempt in range(max_attempts):
            try:
                response = provider.chat(messages, model=model, max_tokens=max_tokens)
            except Exception as e:
                retryable = provider.is_rate_limit_error(e)
                if retryable and attempt < max_attempts - 1:
                    delay = backoff * (2 ** attempt)
                    logger.warning(
                        f"Rate limited on {kind} ({provider.PROVIDER_NAME}), "
                        f"retrying in {delay:.1f}s (attempt {attempt + 1}/{max_attempts})"
                    )
                    self._sleep(delay)
                    continue
                self._record_call(
                    **audit,
                    model=model,
                    latency_ms=int((time.time() - started) * 1000),
                    attempts=attempt + 1,
                    success=False,
                    error=str(e)[:2000],
                )
                logger.error(f"Oracle {kind} request failed after {attempt + 1} attempt(s): {e}")
                raise OracleFailure(f'Falha na classificação automática: {e}') from e

            self._record_call(
                **audit,
                model=response.model or model,
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
                cost_usd=response.cost,
                latency_ms=response.latency_ms,
                attempts=attempt + 1,
                success=True,
            )
            return response

    def _call_json(self, kind: str, messages_for, **kwargs) -> dict:
        response = self._call(kind, messages_for, **kwargs)
        parsed = parse_json_response(response.content)
        if parsed is None:
            logger.error(f"Unparseable {kind} response: {response.content[:200]!r}")
            raise OracleFailure('Resposta da IA em formato inválido.')
        return parsed

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def classify_drawing(self, image_b64: str, media_type: str = 'image/jpeg',
                         student_code: str = None) -> DrawingClassification:
        """Classify a drawing photo into one of the six drawing stages."""
        parsed = self._call_json(
            'drawing',
            lambda provider: build_drawing_prompt(provider, image_b64, media_type),
            vision=True,
            student_code=student_code,
        )
        if not parsed.get('phase'):
            raise OracleFailure('A IA não retornou uma fase de desenho.')

        markers = [
            {
                'label': str(m.get('label', '')),
                'description': str(m.get('description', '')),
                'match': bool(m.get('match')),
            }
            for m in parsed.get('markers') or []
            if isinstance(m, dict)
        ]
        return DrawingClassification(
            phase=canonicalize(parsed['phase'], AssessmentType.DRAWING),
            confidence=_as_confidence(parsed.get('confidence')),
            age_range=parsed.get('ageRange') or '',
            reasoning=parsed.get('reasoning') or '',
            summary=parsed.get('summary') or '',
            recommended_activities=parsed.get('recommendedActivities') or '',
            markers=markers,
        )

    def classify_writing_batch(self, produced_words, target_words,
                               student_code: str = None) -> WritingClassification:
        """Classify a dictation word by word.

        Args:
            produced_words: What the child wrote, as a list or a
                whitespace-separated string.
            target_words: The dictated words, same forms accepted.

        Returns:
            WritingClassification whose ``phase`` is the predominant phase of
            the word breakdown (the model's overall phase is used only when
            it returns no breakdown).
        """
        produced = _split_words(produced_words)
        targets = _split_words(target_words)
        if not targets:
            raise TrackerError('Informe ao menos uma palavra ditada.')

        parsed = self._call_json(
            'writing',
            lambda provider: build_writing_prompt(produced, targets),
            student_code=student_code,
        )

        breakdown = []
        pairs = pair_words(produced, targets)
        for i, item in enumerate(parsed.get('wordBreakdown') or []):
            if not isinstance(item, dict):
                continue
            target, written = pairs[i] if i < len(pairs) else ('', '')
            breakdown.append(WordClassification(
                target=item.get('target') or target,
                produced=item.get('produced') or written,
                phase=canonicalize(item.get('phase') or '', AssessmentType.WRITING),
                explanation=item.get('explanation') or '',
            ))

        if breakdown:
            phase = predominant_phase(breakdown, AssessmentType.WRITING)
        elif parsed.get('phase'):
            phase = canonicalize(parsed['phase'], AssessmentType.WRITING)
        else:
            raise OracleFailure('A IA não retornou uma fase de escrita.')

        return WritingClassification(
            phase=phase,
            confidence=_as_confidence(parsed.get('confidence')),
            reasoning=parsed.get('reasoning') or '',
            summary=parsed.get('summary') or '',
            recommended_activities=RECOMMENDED_ACTIVITIES.get(phase, ''),
            word_breakdown=breakdown,
        )

    def extract_handwritten_text(self, image_b64: str, media_type: str = 'image/jpeg',
                                 student_code: str = None) -> str:
        """Transcribe handwriting to uppercase, space-separated words."""
        response = self._call(
            'transcription',
            lambda provider: build_transcription_prompt(provider, image_b64, media_type),
            vision=True,
            max_tokens=500,
            student_code=student_code,
        )
        return ' '.join((response.content or '').upper().split())

    def generate_narrative_report(self, student_name: str, history,
                                  student_code: str = None) -> NarrativeReport:
        """Narrative pedagogical report over a student's assessment history."""
        response = self._call(
            'narrative',
            lambda provider: build_narrative_prompt(student_name, history),
            student_code=student_code,
        )
        parsed = parse_json_response(response.content)
        if parsed is None or not parsed.get('text'):
            # Plain prose is an acceptable report
            return NarrativeReport(text=(response.content or '').strip())

        sources = [
            {'title': s.get('title') or 'Referência Técnica', 'uri': s['uri']}
            for s in parsed.get('sources') or []
            if isinstance(s, dict) and s.get('uri')
        ]
        return NarrativeReport(text=parsed['text'], sources=sources)
