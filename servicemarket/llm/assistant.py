"""
AI assistant for Dubai services questions.
Uses Google Gemini with Google Search and Google Maps grounding.

The assistant is advisory only: it never touches requests or quotes.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from servicemarket.documents import Coordinates

from .prompts import (
    ERROR_TEXT,
    NO_ANSWER_TEXT,
    OFFLINE_TEXT,
    SYSTEM_INSTRUCTION,
    format_place_prompt,
)


logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

MIN_PLACE_QUERY_LENGTH = 3
MAX_PLACE_SUGGESTIONS = 5


@dataclass
class InsightsOutput:
    """Answer text plus the grounding sources Gemini reported."""
    text: str
    grounding_chunks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'text': self.text,
            'grounding_chunks': self.grounding_chunks,
        }


@dataclass
class PlaceSuggestion:
    name: str
    coordinates: Optional[Coordinates] = None

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'coordinates': self.coordinates.model_dump() if self.coordinates else None,
        }


class DubaiAssistant:
    """
    Gemini-backed helper for visa rules, business setup, travel tips and
    locations in Dubai.

    Without an API key (or when a call fails) every method degrades to a
    fixed fallback answer instead of raising.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        client: Any = None,
    ):
        """
        Args:
            api_key: Google API key (if None, uses fallback mode without LLM)
            model: Gemini model to use; maps grounding needs the 2.5 series
            client: pre-built client, mainly for tests
        """
        self.api_key = api_key
        self.model = model

        if client is not None:
            self.client = client
        elif api_key:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = None

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get_insights(self, query: str) -> InsightsOutput:
        if not (query or "").strip():
            return InsightsOutput(text=NO_ANSWER_TEXT)
        if self.client is None:
            return InsightsOutput(text=OFFLINE_TEXT)

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=query,
                config=types.GenerateContentConfig(
                    tools=[
                        types.Tool(google_search=types.GoogleSearch()),
                        types.Tool(google_maps=types.GoogleMaps()),
                    ],
                    system_instruction=SYSTEM_INSTRUCTION,
                ),
            )
        except Exception:
            logger.exception("Gemini insights call failed")
            return InsightsOutput(text=ERROR_TEXT)

        text = (getattr(response, "text", None) or "").strip()
        return InsightsOutput(
            text=text or NO_ANSWER_TEXT,
            grounding_chunks=self._grounding_chunks(response),
        )

    def get_place_suggestions(self, query: str) -> List[PlaceSuggestion]:
        if not query or len(query.strip()) < MIN_PLACE_QUERY_LENGTH:
            return []
        if self.client is None:
            return []

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=format_place_prompt(query, MAX_PLACE_SUGGESTIONS),
                config=types.GenerateContentConfig(
                    tools=[types.Tool(google_maps=types.GoogleMaps())],
                ),
            )
        except Exception:
            logger.exception("Gemini place suggestion call failed")
            return []

        return parse_place_suggestions(getattr(response, "text", None) or "")[:MAX_PLACE_SUGGESTIONS]

    @staticmethod
    def _grounding_chunks(response: Any) -> List[Dict[str, Any]]:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return []
        metadata = getattr(candidates[0], "grounding_metadata", None)
        chunks = getattr(metadata, "grounding_chunks", None) or []

        out = []
        for chunk in chunks:
            if hasattr(chunk, "model_dump"):
                out.append(chunk.model_dump(mode="json", exclude_none=True))
            elif isinstance(chunk, dict):
                out.append(chunk)
        return out


def parse_place_suggestions(text: str) -> List[PlaceSuggestion]:
    """Pull the first JSON array out of a model reply; [] when there is none."""
    if not text:
        return []

    match = _JSON_ARRAY.search(text)
    raw = match.group(0) if match else _FENCE.sub("", text).strip()

    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("could not parse place suggestions from model reply: %r", text[:200])
        return []
    if not isinstance(parsed, list):
        return []

    suggestions = []
    for item in parsed:
        if isinstance(item, dict):
            name = item.get("name") or item.get("placeName") or ""
            lat, lng = item.get("lat"), item.get("lng")
            coords = None
            if isinstance(lat, (int, float)) and isinstance(lng, (int, float)):
                coords = Coordinates(lat=lat, lng=lng)
        else:
            name, coords = str(item), None
        if name:
            suggestions.append(PlaceSuggestion(name=str(name), coordinates=coords))
    return suggestions
