"""
Prompt templates for the Dubai services assistant.
"""

SYSTEM_INSTRUCTION = """You are a knowledgeable assistant for Dubai services.
You help users understand visa rules, business setup costs, travel tips, and find locations in Dubai.
Use Google Search to verify regulations.
Use Google Maps to find locations, offices, and distances.
Be concise and professional.
When you use information from the search results, cite the source domain inline immediately after the
relevant sentence or list item using the format [[Source: domain.com]]. Do not create a separate 'Sources' section."""


PLACE_SUGGESTIONS_PROMPT = """Search for places in Dubai that match: "{query}".
Use the Google Maps tool to find real locations and their coordinates.
Return ONLY a JSON array of up to {limit} objects: [{{ "name": "Official Name", "lat": 12.34, "lng": 56.78 }}].
Ensure coordinates are accurate from the tool."""


NO_ANSWER_TEXT = "I couldn't find an answer to that."

ERROR_TEXT = "Sorry, I encountered an error while researching your query. Please try again."

OFFLINE_TEXT = (
    "The Dubai assistant is not configured right now. "
    "For visa, business setup and travel questions please check the official government portals "
    "or post a request so verified providers can send you quotes."
)


def format_place_prompt(query: str, limit: int = 5) -> str:
    return PLACE_SUGGESTIONS_PROMPT.format(query=query.strip(), limit=limit)
