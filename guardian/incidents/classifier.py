"""
Campus Guardian Incidents — Classification Service

Maps a free-text incident description to exactly one of the four incident
categories with a single hosted-model call. There is no fallback category:
any failure is raised as ClassificationFailed.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from google import genai
from google.genai import types

from ..errors import ClassificationFailed
from .models import INCIDENT_TYPES

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an AI assistant that helps classify incident types based on the "
    "audio transcript provided by campus security or a student. Determine whether "
    "the incident falls under 'Verbal Abuse', 'Intimidation', 'Micro-aggressions', "
    "or 'Other'. Respond ONLY with one of those options. No explanation is required."
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "incidentType": {
            "type": "STRING",
            "enum": INCIDENT_TYPES,
            "description": "The classified type of incident.",
        },
    },
    "required": ["incidentType"],
}


def parse_label(raw: Optional[str]) -> str:
    """Return the matching category label or raise ClassificationFailed."""
    text = (raw or "").strip().strip("'\"").strip()
    for label in INCIDENT_TYPES:
        if text.lower() == label.lower():
            return label
    raise ClassificationFailed(f"Classifier returned an unknown category: {raw!r}")


class IncidentClassifier(ABC):
    """Single-call text → category classifier."""

    name = "base"

    @abstractmethod
    async def classify(self, transcript: str) -> str:
        """Return one of INCIDENT_TYPES or raise ClassificationFailed."""

    def is_configured(self) -> bool:
        return True


class GeminiClassifier(IncidentClassifier):
    """
    Classifier backed by Gemini via the google-genai SDK.

    The response is constrained to JSON with an enum of the four labels, then
    re-validated locally.
    """

    name = "gemini"

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model
        self._client = genai.Client(api_key=api_key) if api_key else None

    def is_configured(self) -> bool:
        return self._client is not None

    async def classify(self, transcript: str) -> str:
        if not self.is_configured():
            raise ClassificationFailed("Incident classification is not configured.")

        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=f"Audio Transcript: {transcript}\n\nBased on the audio transcript, classify the incident type.",
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_INSTRUCTION,
                    response_mime_type="application/json",
                    response_schema=RESPONSE_SCHEMA,
                    temperature=0.0,
                ),
            )
        except Exception as e:
            logger.error(f"[Classifier] request failed: {e}")
            raise ClassificationFailed("Could not classify the incident. Please try again.") from e

        try:
            payload = json.loads(response.text or "")
        except ValueError:
            raise ClassificationFailed("Classifier returned malformed output.")
        if not isinstance(payload, dict):
            raise ClassificationFailed("Classifier returned malformed output.")
        return parse_label(payload.get("incidentType"))
