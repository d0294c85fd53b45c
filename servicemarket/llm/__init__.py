"""
Dubai services assistant backed by Gemini with search and maps grounding.
"""

from .assistant import DubaiAssistant, InsightsOutput, PlaceSuggestion

__all__ = ['DubaiAssistant', 'InsightsOutput', 'PlaceSuggestion']
