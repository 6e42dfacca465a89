"""
GeminiService - HTTP client for the Gemini generateContent endpoint

Soft failures (no API key, an error object in the response body) come back
as Result.failure. Transport and decoding failures raise GeminiRequestError.
Every call that reaches the model is written to the AI audit log.
"""

import time
from typing import Any, Dict, Optional
import requests

from logging_config import get_logger, performance_logger
from services.common.result import Result

logger = get_logger(__name__)

DEFAULT_API_BASE = 'https://generativelanguage.googleapis.com/v1beta'
API_KEY_MISSING_MESSAGE = "AI Error: API Key not configured."
NO_RESPONSE_TEXT = "No response generated"


class GeminiRequestError(Exception):
    """Raised when the Gemini endpoint cannot be reached or returns garbage."""
    pass


class GeminiService:
    """Thin client over v1beta/models/{model}:generateContent"""

    def __init__(self, ai_settings_service, api_base: Optional[str] = None, timeout: float = 30):
        self.ai_settings_service = ai_settings_service
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip('/')
        self.timeout = timeout

    @staticmethod
    def build_payload(prompt: str, temperature: float, max_tokens: int,
                      system_prompt: Optional[str] = None) -> Dict[str, Any]:
        payload = {
            'contents': [
                {'role': 'user', 'parts': [{'text': prompt}]}
            ],
            'generationConfig': {
                'temperature': temperature,
                'maxOutputTokens': max_tokens,
            },
        }
        if system_prompt:
            payload['system_instruction'] = {'parts': [{'text': system_prompt}]}
        return payload

    def run_gemini(self, prompt: str, model_override: Optional[str] = None,
                   temperature_override: Optional[float] = None,
                   tenant_id: Optional[int] = None) -> Result[str]:
        """
        Send one prompt to Gemini.

        Args:
            prompt: User-role text
            model_override: Model name instead of the tenant's default_model
            temperature_override: Used even when 0; None means use settings
            tenant_id: Broker whose AI settings apply

        Returns:
            Result with the generated text, or a failure whose error starts
            with "AI Error:"

        Raises:
            GeminiRequestError: On network errors or an undecodable response
        """
        settings = self.ai_settings_service.get_settings(tenant_id)
        api_key = settings.get('api_key')

        if not api_key:
            logger.warning("Gemini API key missing", tenant_id=tenant_id)
            return Result.failure(API_KEY_MISSING_MESSAGE, code='API_KEY_MISSING')

        model = model_override or settings['default_model']
        temperature = temperature_override if temperature_override is not None else settings['temperature']
        payload = self.build_payload(prompt, temperature, settings['max_tokens'],
                                     settings.get('system_prompt'))
        url = f"{self.api_base}/models/{model}:generateContent"

        started = time.monotonic()
        try:
            response = requests.post(
                url,
                params={'key': api_key},
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
            performance_logger.log_api_call('gemini', model, (time.monotonic() - started) * 1000,
                                            response.status_code)
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Gemini request failed", model=model, error=str(e))
            self.ai_settings_service.log_interaction(
                model=model,
                prompt_preview=prompt[:50],
                response_preview=f"ERROR: {e}",
                success=False,
                tenant_id=tenant_id,
            )
            raise GeminiRequestError(str(e)) from e

        if not isinstance(data, dict):
            logger.error("Gemini returned a non-object body", model=model)
            raise GeminiRequestError("Unexpected response body from Gemini")

        if data.get('error'):
            error = data['error']
            message = error.get('message', 'Unknown error') if isinstance(error, dict) else str(error)
            logger.error("Gemini API error", model=model, status_code=response.status_code, error=error)
            self.ai_settings_service.log_interaction(
                model=model,
                prompt_preview=prompt[:100] + '...',
                response_preview=f"ERROR: {message}"[:200],
                success=False,
                tenant_id=tenant_id,
            )
            return Result.failure(f"AI Error: {message}", code='API_ERROR',
                                  metadata={'model': model, 'status_code': response.status_code})

        output, finish_reason = self._extract_text(data)

        self.ai_settings_service.log_interaction(
            model=model,
            prompt_preview=prompt[:100] + '...',
            response_preview=output[:100] + (f" [{finish_reason}]" if finish_reason else '...'),
            success=True,
            tenant_id=tenant_id,
        )
        logger.debug("Gemini response received", model=model, finish_reason=finish_reason)
        return Result.success(output, metadata={'model': model, 'finish_reason': finish_reason})

    @staticmethod
    def _extract_text(data: Dict[str, Any]):
        candidates = data.get('candidates') or []
        candidate = candidates[0] if candidates else {}
        parts = (candidate.get('content') or {}).get('parts') or []
        text = parts[0].get('text') if parts else None
        return text or NO_RESPONSE_TEXT, candidate.get('finishReason')
