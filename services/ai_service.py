"""
AIService - lead qualification, reply generation and language detection

Qualification asks the model to extract structured fields and then scores
them deterministically, so stored scores do not depend on how the model
phrases its answer.
"""

import json
import re
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

from logging_config import get_logger
from services.gemini_service import GeminiRequestError

logger = get_logger(__name__)

TRANSLATION_MODEL = 'gemini-2.0-flash'

FALLBACK_REPLIES = {
    'es': "Gracias por tu mensaje, te responderé enseguida.",
    'pt': "Obrigado pela mensagem, já te respondo.",
    'en': "Thank you for your message, I'll reply shortly.",
}

# Country calling code -> language; checked before any keyword matching
PHONE_PREFIX_LANGUAGES = (
    ('55', 'pt'),
    ('34', 'es'),
    ('52', 'es'),
    ('54', 'es'),
    ('56', 'es'),
    ('57', 'es'),
    ('51', 'es'),
)

SPANISH_KEYWORDS = re.compile(r'\b(hola|gracias)\b')
PORTUGUESE_KEYWORDS = re.compile(r'\b(oi|obrigado)\b')

UNKNOWN_VALUES = {'', 'unknown', 'null', 'none', 'n/a'}

# Scoring weights and status thresholds; changing them changes every stored score
BASE_SCORE = 20
LOCATION_POINTS = 20
BUDGET_POINTS = 20
TIMELINE_POINTS = 20
HIGH_URGENCY_POINTS = 20
BUYING_INTENT_POINTS = 10
IN_QUALIFICATION_ABOVE = 30
QUALIFIED_ABOVE = 70
HOT_ABOVE = 90

SNAPSHOT_FIELDS = ('name', 'phone', 'email', 'status', 'intent', 'budget', 'timeline',
                   'property_type', 'desired_city', 'financing', 'language')


@dataclass
class AnalysisResult:
    intent: str
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    score: int = 0
    suggested_status: str = 'New'
    recommended_action: str = 'Follow up'
    ai_summary: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def fallback_analysis() -> AnalysisResult:
    return AnalysisResult(
        intent='Error Processing',
        extracted_data={
            'name': None,
            'email': None,
            'phone': None,
            'budget': None,
            'timeline': None,
            'property_type': None,
            'location': None,
            'financing': None,
            'urgency_level': 'low',
        },
        score=0,
        suggested_status='New',
        recommended_action='Manual Review',
        ai_summary='AI failed to process message.',
    )


def as_text(value: Any) -> Optional[str]:
    """Model output as a plain string; objects and lists are kept as JSON text."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def as_count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def is_known(value: Any) -> bool:
    """True for a value the model actually extracted."""
    if value is None:
        return False
    return str(value).strip().lower() not in UNKNOWN_VALUES


def compute_score(extracted: Dict[str, Any], intent: Optional[str]) -> int:
    score = BASE_SCORE
    if is_known(extracted.get('location')):
        score += LOCATION_POINTS
    if is_known(extracted.get('budget')):
        score += BUDGET_POINTS
    if is_known(extracted.get('timeline')):
        score += TIMELINE_POINTS
    if str(extracted.get('urgency_level') or '').strip().lower() == 'high':
        score += HIGH_URGENCY_POINTS
    intent_text = (intent or '').lower()
    if 'buy' in intent_text or 'motivated' in intent_text:
        score += BUYING_INTENT_POINTS
    return max(0, min(100, score))


def suggest_status(score: int, intent: Optional[str] = None) -> str:
    if (intent or '').strip().lower() == 'low intent':
        return 'New'
    if score > HOT_ABOVE:
        return 'Hot'
    if score > QUALIFIED_ABOVE:
        return 'Qualified'
    if score > IN_QUALIFICATION_ABOVE:
        return 'In Qualification'
    return 'New'


def strip_code_fences(raw: str) -> str:
    return raw.replace('```json', '').replace('```', '').strip()


def lead_value(lead: Any, name: str) -> Any:
    """Read a field from a Lead model or a plain dict."""
    if lead is None:
        return None
    if isinstance(lead, dict):
        return lead.get(name)
    return getattr(lead, name, None)


def lead_snapshot(lead: Any) -> Dict[str, Any]:
    return {name: lead_value(lead, name) for name in SNAPSHOT_FIELDS if lead_value(lead, name) is not None}


def detect_language(message: str, lead: Any = None) -> str:
    """
    Pick en, es or pt for a reply.

    A phone number in international format wins over the message text.
    """
    phone = (lead_value(lead, 'phone') or '').strip()
    if phone.startswith('+'):
        digits = re.sub(r'\D', '', phone)
        for prefix, language in PHONE_PREFIX_LANGUAGES:
            if digits.startswith(prefix):
                return language

    text = (message or '').strip().lower()
    if text == 'casa':
        return 'pt'
    if SPANISH_KEYWORDS.search(text):
        return 'es'
    if PORTUGUESE_KEYWORDS.search(text):
        return 'pt'
    return 'en'


class AIService:
    """Prompts, parsing and scoring on top of GeminiService"""

    def __init__(self, gemini_service, ai_settings_service):
        self.gemini_service = gemini_service
        self.ai_settings_service = ai_settings_service

    detect_language = staticmethod(detect_language)
    compute_score = staticmethod(compute_score)
    suggest_status = staticmethod(suggest_status)

    def qualify_lead(self, message: str, history: str = '',
                     tenant_id: Optional[int] = None) -> AnalysisResult:
        """
        Extract buyer data from a message and score it.

        Never raises: a failed model call or unparseable output returns the
        fixed "Error Processing" result.
        """
        settings = self.ai_settings_service.get_settings(tenant_id)
        prompt = self._qualification_prompt(message, history)

        try:
            result = self.gemini_service.run_gemini(prompt, settings['strong_model'], tenant_id=tenant_id)
        except GeminiRequestError as e:
            logger.error("Qualification request failed", tenant_id=tenant_id, error=str(e))
            return fallback_analysis()

        if result.is_failure:
            logger.warning("Qualification returned an AI error", tenant_id=tenant_id, error=result.error)
            return fallback_analysis()

        try:
            data = json.loads(strip_code_fences(result.data))
        except (json.JSONDecodeError, TypeError) as e:
            logger.error("Qualification output is not valid JSON", error=str(e), raw=result.data[:200])
            return fallback_analysis()

        if not isinstance(data, dict):
            logger.error("Qualification output is not a JSON object", raw=result.data[:200])
            return fallback_analysis()

        try:
            return self._to_analysis(data, result.data)
        except Exception as e:
            logger.error("Qualification output could not be interpreted", error=str(e), raw=result.data[:200])
            return fallback_analysis()

    def generate_response(self, lead: Any, message: str, history: str = '',
                          tenant_id: Optional[int] = None) -> str:
        """Draft a reply to the lead; falls back to a fixed sentence on any failure."""
        language = detect_language(message, lead)
        if tenant_id is None:
            tenant_id = lead_value(lead, 'broker_id')

        settings = self.ai_settings_service.get_settings(tenant_id)
        system_prompt = (settings.get('system_prompt') or '').strip()
        lead_json = json.dumps(lead_snapshot(lead), ensure_ascii=False)

        if len(system_prompt) > 10:
            prompt = (
                f"Conversation history:\n{history}\n\n"
                f"Lead message: \"{message}\"\n"
                f"Lead known data: {lead_json}"
            )
        else:
            prompt = self._reply_prompt(message, history, language, lead_json)

        try:
            result = self.gemini_service.run_gemini(prompt, tenant_id=tenant_id)
        except GeminiRequestError as e:
            logger.error("Reply generation failed", tenant_id=tenant_id, error=str(e))
            return FALLBACK_REPLIES[language]

        if result.is_failure:
            logger.warning("Reply generation returned an AI error", tenant_id=tenant_id, error=result.error)
            return FALLBACK_REPLIES[language]

        return result.data.strip() or FALLBACK_REPLIES[language]

    def translate(self, text: str, target_language: str, tenant_id: Optional[int] = None) -> str:
        """Translate text; returns the input unchanged when the model is unavailable."""
        prompt = f"Translate this accurately to {target_language}. Reply with the translation only: {text}"
        try:
            result = self.gemini_service.run_gemini(prompt, TRANSLATION_MODEL, tenant_id=tenant_id)
        except GeminiRequestError as e:
            logger.error("Translation failed", target_language=target_language, error=str(e))
            return text
        return result.map(str.strip).unwrap_or(text) or text

    def _to_analysis(self, data: Dict[str, Any], raw: str) -> AnalysisResult:
        urgency = as_text(data.get('urgency')) or 'Medium'
        extracted = {
            'name': as_text(data.get('name')),
            'email': as_text(data.get('email')),
            'phone': as_text(data.get('phone')),
            'budget': as_text(data.get('budget')),
            'timeline': as_text(data.get('timeline')),
            'property_type': as_text(data.get('property_type')),
            'location': as_text(data.get('location') or data.get('location_preference')),
            'financing': as_text(data.get('financing')),
            'urgency_level': urgency.lower(),
            'bedrooms': as_count(data.get('bedrooms')),
            'bathrooms': as_count(data.get('bathrooms')),
        }
        intent = as_text(data.get('intent')) or 'General Inquiry'
        score = compute_score(extracted, intent)
        status = suggest_status(score, intent)
        extracted['suggested_status'] = status

        return AnalysisResult(
            intent=intent,
            extracted_data=extracted,
            score=score,
            suggested_status=status,
            recommended_action='Call Immediately' if urgency.lower() == 'high' else 'Follow up',
            ai_summary=as_text(data.get('summary')) or as_text(data.get('notes')) or raw,
        )

    @staticmethod
    def _qualification_prompt(message: str, history: str) -> str:
        return f"""
Analyze the real estate lead conversation below. Return STRICT JSON only, no prose.

Conversation so far:
{history or '(none)'}

Latest message: "{message}"

Return:
{{
  "name": "Lead name or null",
  "email": "Email or null",
  "phone": "Phone or null",
  "intent": "Buying Interest | Rental Inquiry | Pricing Question | Low Intent | Highly Motivated",
  "property_type": "House | Condo | Land | Unknown",
  "location": "City/Area or Unknown",
  "budget": "Value or Unknown",
  "timeline": "ASAP | This Month | This Year | Unknown",
  "financing": "Cash | Mortgage | Unknown",
  "urgency": "High | Medium | Low",
  "bedrooms": "Number or null",
  "bathrooms": "Number or null",
  "summary": "Short realtor-friendly summary"
}}
"""

    @staticmethod
    def _reply_prompt(message: str, history: str, language: str, lead_json: str) -> str:
        return f"""
You are FlowRealtors AI, assistant to a real estate agent.
Write the next message to a homebuyer.

Conversation history:
{history or '(none)'}

Lead message: "{message}"
Lead known data: {lead_json}
Reply language: {language}

Rules:
- Do not greet again if the conversation has already started
- Never invent property listings, prices or addresses
- Ask only for information that is still missing
- Always move toward booking a call or meeting with the agent
- Keep it under 200 characters
- Write strictly in {language}
"""
