"""
Structured (LLM) expense extraction.

DESIGN DECISION: The LLM is a TRANSLATOR, not an ORACLE.
It only converts the transcript into a JSON array that we then validate
field by field. Anything it returns that does not survive validation is
dropped; a response we cannot parse at all raises ExtractionInvalid and
the caller falls back to pattern extraction.

AI-sourced items get a flat 0.9 confidence: they are trusted more than
pattern matches, which are scored individually later.
"""

import difflib
import json
from typing import Any, Optional

import structlog

from voice_ledger.extraction.regex_extractor import capitalize_first
from voice_ledger.extraction.tokens import resolve_category_alias
from voice_ledger.models.expense import (
    CandidateItem,
    ExpenseCategory,
    ExtractionSource,
    to_amount,
)
from voice_ledger.services.llm import CompletionProvider


logger = structlog.get_logger(__name__)

AI_CONFIDENCE = 0.9

EXTRACTION_PROMPT = """You are the expense parser of a personal finance app.
A user speaks in Arabic, English, or both, and you extract structured expense
data from the voice transcript.

The transcript may contain several purchases, for example:
"دفعت 15 على القهوة"
"Spent 30 on groceries and 20 for gas"

For each purchase extract:
- "amount": a number only, no currency symbols or words (no $, EGP, جنيه)
- "description": short, in the speaker's language (like "coffee", "bus", "مطعم")
- "category": exactly one of: {categories}

Choose the closest category using Arabic or English meaning.
If it is not clear, use "Others".

Return ONLY a JSON array, for example:
[{{"amount": 15, "description": "قهوة", "category": "Food"}},
 {{"amount": 30, "description": "groceries", "category": "Shopping"}}]

If there is no expense in the transcript, return [].

User transcript: "{transcript}"
"""


class ExtractionInvalid(Exception):
    """The structured extractor produced nothing usable."""
    pass


def normalize_category(name: str) -> str:
    """
    Map a model-produced category name onto the allowed set.

    Exact names (any case) and known aliases first, then the closest
    spelling, then Others.
    """
    allowed = ExpenseCategory.names()
    by_lower = {value.lower(): value for value in allowed}

    key = name.strip().lower()
    if key in by_lower:
        return by_lower[key]

    alias = resolve_category_alias(key)
    if alias:
        return alias

    close = difflib.get_close_matches(key, list(by_lower), n=1, cutoff=0.75)
    if close:
        return by_lower[close[0]]

    return ExpenseCategory.OTHERS.value


def locate_json_array(response: str) -> Optional[str]:
    """Outermost [...] in the response, even when wrapped in prose or fences."""
    start = response.find("[")
    end = response.rfind("]")
    if start < 0 or end <= start:
        return None
    return response[start:end + 1]


def _valid_item(element: Any) -> Optional[CandidateItem]:
    if not isinstance(element, dict):
        return None

    raw_amount = element.get("amount")
    description = element.get("description")
    category = element.get("category")

    if isinstance(raw_amount, bool) or raw_amount is None:
        return None
    if not isinstance(description, str) or not description.strip():
        return None
    if not isinstance(category, str) or not category.strip():
        return None

    try:
        amount = to_amount(raw_amount)
    except ValueError:
        return None
    if amount <= 0:
        return None

    return CandidateItem(
        description=capitalize_first(description.strip()[:200]),
        amount=amount,
        category=normalize_category(category),
        confidence=AI_CONFIDENCE,
        source=ExtractionSource.AI,
    )


def parse_items(response: str) -> list[CandidateItem]:
    """
    Turn a raw model response into validated candidate items.

    Raises:
        ExtractionInvalid: If no JSON array can be found or parsed
    """
    if not response or not response.strip():
        raise ExtractionInvalid("Empty response from extraction provider")

    array_text = locate_json_array(response)
    if array_text is None:
        raise ExtractionInvalid("No JSON array in extraction response")

    try:
        data = json.loads(array_text)
    except json.JSONDecodeError as e:
        raise ExtractionInvalid(f"Extraction response is not valid JSON: {e}")

    if not isinstance(data, list):
        raise ExtractionInvalid("Extraction response is not a list")

    items = []
    for element in data:
        item = _valid_item(element)
        if item is None:
            logger.debug("structured_item_dropped", element=str(element)[:200])
            continue
        items.append(item)
    return items


class StructuredExtractor:
    """
    Extracts candidate items with a completion provider.

    BOUNDARIES:
    - NEVER persists anything
    - NEVER invents fields: elements missing amount, description or
      category are dropped
    """

    def __init__(self, provider: CompletionProvider):
        self._provider = provider

    def build_prompt(self, text: str) -> str:
        categories = ", ".join(f'"{name}"' for name in ExpenseCategory.names())
        return EXTRACTION_PROMPT.format(
            categories=categories,
            transcript=text.replace('"', "'"),
        )

    async def extract(self, text: str) -> list[CandidateItem]:
        """
        Extract candidate items from normalized text.

        An empty list is a valid answer (the model found no expenses).

        Raises:
            ExtractionInvalid: On provider error or unparseable output
        """
        try:
            response = await self._provider.complete(self.build_prompt(text))
        except Exception as e:
            raise ExtractionInvalid(f"Extraction provider failed: {e}") from e

        items = parse_items(response)
        logger.info("structured_extraction_completed", item_count=len(items))
        return items
