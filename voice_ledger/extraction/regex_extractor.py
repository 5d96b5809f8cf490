"""
Pattern-based expense extraction.

The fallback when structured extraction is unusable, so it must never
fail: given any text it returns zero or more candidate items.

The text is split into clauses ("coffee 5, lunch 15 and 30 on gas") and
each clause runs through an ordered cascade of pattern functions. The
first function that yields something wins for that clause. Anchored
patterns come first because they know which side of the number the
description sits on; the unanchored bare pattern is the catch-all.

If no clause matched anything, the first number in the text becomes the
amount and the rest of the text the description, so a transcript that
contains a number always produces something.
"""

import re
from decimal import Decimal
from typing import Callable, NamedTuple, Optional

import structlog

from voice_ledger.extraction.digits import normalize_digits
from voice_ledger.extraction.tokens import (
    CATEGORY_MARKER_RE,
    CATEGORY_MARKERS,
    CURRENCY_PATTERN,
    EXPLICIT_CATEGORY_PATTERN,
    resolve_category_alias,
    strip_currency,
)
from voice_ledger.models.expense import CandidateItem, ExtractionSource, to_amount


logger = structlog.get_logger(__name__)

MAX_DESCRIPTION_LENGTH = 200


class RawMatch(NamedTuple):
    description: str
    amount: str
    category: Optional[str] = None


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

_CONNECTORS = ["for", "on", "at", "and", "على", "في", "ب"] + CATEGORY_MARKERS
_WORD = r"(?<!\w)(?!(?:{connectors})(?!\w))[^\W\d_][\w'’-]*".format(
    connectors="|".join(sorted(set(_CONNECTORS), key=len, reverse=True)),
)
_WORDS = rf"(?P<description>{_WORD}(?:\s+{_WORD})*)"
# Any whole words, connectors included; only used anchored to a full clause
_ANY_WORD = r"[^\W\d_][\w'’-]*"
_PHRASE = rf"(?P<description>{_ANY_WORD}(?:\s+{_ANY_WORD})*)"
_AMOUNT = r"(?P<amount>\d+(?:\.\d{1,2})?)"
_MONEY = rf"(?:{CURRENCY_PATTERN}\s*)?{_AMOUNT}(?:\s*{CURRENCY_PATTERN}(?!\w))?"

_FLAGS = re.IGNORECASE

_ITEM_AMOUNT = re.compile(rf"{_PHRASE}\s+{_MONEY}", _FLAGS)
_AMOUNT_FOR_ITEM = re.compile(rf"{_MONEY}\s+(?:for|on|على|في)\s+{_PHRASE}", _FLAGS)
_SPENT_ON = re.compile(
    rf"(?:i\s+)?(?:spent|paid|cost|دفعت|صرفت)\s+{_MONEY}\s+(?:on|for|على|في)\s+{_PHRASE}",
    _FLAGS,
)
_BOUGHT_FOR = re.compile(
    rf"(?:i\s+)?(?:bought|purchased|got|اشتريت)\s+{_WORDS}\s+(?:for|at|ب)\s+{_MONEY}",
    _FLAGS,
)
_EXPLICIT_CATEGORY = re.compile(
    rf"{_WORDS}\s+{_MONEY}\s+(?:(?:in|for|under|as)\s+)?(?:category\s+)?"
    rf"(?P<category>{EXPLICIT_CATEGORY_PATTERN})",
    _FLAGS,
)
_BARE_ITEM_AMOUNT = re.compile(rf"{_WORDS}\s+{_MONEY}", _FLAGS)
_BARE_AMOUNT_ITEM = re.compile(rf"{_MONEY}\s+{_WORDS}", _FLAGS)

_FIRST_NUMBER = re.compile(r"\d+(?:\.\d+)?")

# Arabic "و" glued to the word after an amount starts a new item
_ARABIC_AND = re.compile(rf"(\d(?:\s*{CURRENCY_PATTERN})?)\s+و(?=[^\W\d_])", _FLAGS)
_CLAUSE_SPLIT = re.compile(
    r"\s*(?:[,;\n،؛&+]|\.(?:\s+|$)|(?<!\w)(?:and|then|plus)(?!\w)|(?<!\S)و(?!\S))\s*",
    _FLAGS,
)
_THOUSANDS = re.compile(r"(?<=\d)[,٬](?=\d{3}(?!\d))")

_LEADING_FILLER = re.compile(
    r"^(?:(?:i|we|and|then|also|a|an|the|some|spent|paid|bought|purchased|got|cost"
    r"|for|on|at|دفعت|صرفت|اشتريت)\s+)+",
    _FLAGS,
)
_TRAILING_CONNECTOR = re.compile(r"\s+(?:for|on|at|in|of|ب|على|في)$", _FLAGS)


# =============================================================================
# TEXT PREPARATION
# =============================================================================

def prepare_text(text: str) -> str:
    """Normalize digits and number separators ahead of matching."""
    text = normalize_digits(text)
    text = _THOUSANDS.sub("", text)
    return text.replace("٫", ".")


def split_clauses(text: str) -> list[str]:
    text = _ARABIC_AND.sub(r"\1,", text)
    clauses = (c.strip(" .!?\t") for c in _CLAUSE_SPLIT.split(text))
    return [c for c in clauses if c]


def capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def clean_description(raw: str) -> str:
    """
    Strip currency words, category markers and filler from a description.

    Returns an empty string when nothing meaningful is left.
    """
    text = strip_currency(raw)
    text = CATEGORY_MARKER_RE.sub(" ", text)
    text = re.sub(r"\s+", " ", text).strip(" .,:;!?-")
    text = _LEADING_FILLER.sub("", text)
    text = _TRAILING_CONNECTOR.sub("", text)
    text = text.strip(" .,:;!?-")
    return capitalize_first(text[:MAX_DESCRIPTION_LENGTH].strip())


# =============================================================================
# PATTERN CASCADE
# =============================================================================

def _full(pattern: re.Pattern, clause: str) -> list[RawMatch]:
    match = pattern.fullmatch(clause)
    if not match:
        return []
    groups = match.groupdict()
    return [RawMatch(groups["description"], groups["amount"], groups.get("category"))]


def item_amount(clause: str) -> list[RawMatch]:
    """'coffee 5 dollars', 'gift for mom 100'"""
    return _full(_ITEM_AMOUNT, clause)


def amount_for_item(clause: str) -> list[RawMatch]:
    """'5 dollars for coffee', '30 on gas'"""
    return _full(_AMOUNT_FOR_ITEM, clause)


def spent_on(clause: str) -> list[RawMatch]:
    """'spent 20 on groceries'"""
    return _full(_SPENT_ON, clause)


def bought_for(clause: str) -> list[RawMatch]:
    """'bought a shirt for 25'"""
    return _full(_BOUGHT_FOR, clause)


def explicit_category(clause: str) -> list[RawMatch]:
    """'lunch 15 in food'"""
    return _full(_EXPLICIT_CATEGORY, clause)


def bare_amount(clause: str) -> list[RawMatch]:
    """Unanchored 'word(s) amount', then 'amount word(s)', anywhere in the clause."""
    for pattern in (_BARE_ITEM_AMOUNT, _BARE_AMOUNT_ITEM):
        matches = [
            RawMatch(m.group("description"), m.group("amount"))
            for m in pattern.finditer(clause)
        ]
        if matches:
            return matches
    return []


CASCADE: list[Callable[[str], list[RawMatch]]] = [
    item_amount,
    amount_for_item,
    spent_on,
    bought_for,
    explicit_category,
    bare_amount,
]


def _to_candidate(raw: RawMatch) -> Optional[CandidateItem]:
    description = clean_description(raw.description)
    if not description:
        return None
    try:
        amount = to_amount(raw.amount)
    except ValueError:
        return None
    if amount <= Decimal("0"):
        return None
    return CandidateItem(
        description=description,
        amount=amount,
        category=resolve_category_alias(raw.category),
        source=ExtractionSource.REGEX,
    )


def _match_clause(clause: str) -> list[CandidateItem]:
    for pattern_fn in CASCADE:
        items = [
            item for item in (_to_candidate(raw) for raw in pattern_fn(clause))
            if item is not None
        ]
        if items:
            return items
    return []


def _last_resort(text: str) -> list[CandidateItem]:
    match = _FIRST_NUMBER.search(text)
    if not match:
        return []
    remainder = text[:match.start()] + " " + text[match.end():]
    item = _to_candidate(RawMatch(remainder, match.group()))
    return [item] if item else []


def extract_regex(text: str) -> list[CandidateItem]:
    """
    Extract candidate items from free text. Never raises.

    Items come back without confidence, and without category unless the
    speaker named one explicitly.
    """
    if not text or not text.strip():
        return []

    prepared = prepare_text(text)

    items: list[CandidateItem] = []
    for clause in split_clauses(prepared):
        items.extend(_match_clause(clause))

    if not items:
        items = _last_resort(prepared)
        if items:
            logger.info("regex_last_resort_used", description=items[0].description)

    logger.info("regex_extraction_completed", item_count=len(items))
    return items
