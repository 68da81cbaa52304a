"""
Extraction adapter.

Responsibilities:
- Ask an external model for suggestions about an uploaded file (name,
  classification, date, total)
- Keep the latest suggestions per user in a TTL-evicting session store so a
  following quick send can attach them

Suggestions are untrusted: they pre-fill forms and are stored as
`ai_analysis` for display, and no lifecycle guard ever reads them.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from django.conf import settings
from django.core.cache import cache
from google import genai
from google.genai import types

from ..exceptions import DependencyFailure

logger = logging.getLogger(__name__)


ANALYSIS_FIELDS = ('suggestedName', 'suggestedClassification', 'extractedDate', 'extractedTotal')

ANALYSIS_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'suggestedName': {'type': 'STRING'},
        'suggestedClassification': {'type': 'STRING'},
        'extractedDate': {'type': 'STRING'},
        'extractedTotal': {'type': 'NUMBER'},
    },
    'required': list(ANALYSIS_FIELDS),
}

PROMPT_TEMPLATE = (
    'Analise o documento e a descrição: "{description}". '
    'Retorne um JSON com: suggestedName, suggestedClassification, '
    'extractedDate (AAAA-MM-DD), extractedTotal (número).'
)


class ExtractionService(ABC):
    """Best-effort structured extraction from a file."""

    @abstractmethod
    def analyze(self, file_bytes: bytes, media_type: str, hints: Optional[dict] = None) -> dict:
        """
        Return suggested fields for the file.

        Raises:
            DependencyFailure: the external service failed or answered garbage
        """
        raise NotImplementedError


class GeminiExtractionService(ExtractionService):
    """Extraction through the Gemini API (google-genai SDK)."""

    def __init__(self, api_key: str = None, model_name: str = None, client=None):
        self.model_name = model_name or settings.GEMINI_MODEL
        self._api_key = api_key or settings.GEMINI_API_KEY
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self._api_key:
                raise DependencyFailure(
                    "Gemini API is not configured (GEMINI_API_KEY is missing)",
                    dependency='extraction',
                )
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def analyze(self, file_bytes: bytes, media_type: str, hints: Optional[dict] = None) -> dict:
        description = (hints or {}).get('description') or 'Nenhuma'
        prompt = PROMPT_TEMPLATE.format(description=description)

        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=[
                    prompt,
                    types.Part.from_bytes(data=bytes(file_bytes), mime_type=media_type),
                ],
                config={
                    'response_mime_type': 'application/json',
                    'response_schema': ANALYSIS_SCHEMA,
                    'temperature': 0.1,
                },
            )
        except DependencyFailure:
            raise
        except Exception as e:
            logger.error(f"Gemini extraction failed: {e}")
            raise DependencyFailure(f"Extraction service failed: {e}", dependency='extraction') from e

        return self.parse_response(response.text)

    @staticmethod
    def parse_response(raw: str) -> dict:
        """Parse the model answer, tolerating markdown code fences."""
        cleaned = (raw or '').strip()
        if cleaned.startswith('```'):
            lines = cleaned.split('\n')
            cleaned = '\n'.join(lines[1:])
            if cleaned.rstrip().endswith('```'):
                cleaned = cleaned.rstrip()[:-3]
            cleaned = cleaned.strip()

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise DependencyFailure(
                f"Extraction service returned invalid JSON: {e}",
                dependency='extraction',
            ) from e
        if not isinstance(data, dict):
            raise DependencyFailure("Extraction service returned a non-object answer", dependency='extraction')

        return {key: data.get(key) for key in ANALYSIS_FIELDS}


class ExtractionSessionStore:
    """
    Latest extraction result per user, evicted after a TTL.

    Backed by the Django cache so every worker process sees the same sessions.
    """

    KEY_PREFIX = 'extraction-session'

    def __init__(self, ttl: int = None, backend=None):
        self.ttl = ttl if ttl is not None else settings.EXTRACTION_SESSION_TTL
        self.backend = backend or cache

    def _key(self, user_id):
        return f"{self.KEY_PREFIX}:{user_id}"

    def save(self, user_id, analysis: dict):
        self.backend.set(self._key(user_id), analysis, timeout=self.ttl)

    def get(self, user_id) -> Optional[dict]:
        return self.backend.get(self._key(user_id))

    def pop(self, user_id) -> Optional[dict]:
        """Return and forget the user's latest analysis."""
        key = self._key(user_id)
        analysis = self.backend.get(key)
        if analysis is not None:
            self.backend.delete(key)
        return analysis


# Singleton instances
_extraction_service = None
_session_store = None


def get_extraction_service() -> ExtractionService:
    """Get singleton instance of the configured extraction service."""
    global _extraction_service
    if _extraction_service is None:
        _extraction_service = GeminiExtractionService()
    return _extraction_service


def get_extraction_session_store() -> ExtractionSessionStore:
    """Get singleton instance of the extraction session store."""
    global _session_store
    if _session_store is None:
        _session_store = ExtractionSessionStore()
    return _session_store
