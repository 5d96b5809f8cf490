"""
Shared vocabulary for extraction, scoring and categorization.

Currency words, category names and their spoken aliases, and the keyword
table the classifier falls back to. English and Arabic forms live side
by side because users mix both in one sentence.
"""

import re
from typing import Optional

from voice_ledger.models.expense import ExpenseCategory


CURRENCY_WORDS = [
    "dollars", "dollar", "bucks", "buck", "usd",
    "egp", "pounds", "pound", "gbp",
    "euros", "euro", "eur",
    "sar", "riyals", "riyal", "aed", "dirhams", "dirham",
    "جنيهات", "جنيه", "جنية", "دولار", "ريال", "درهم", "يورو",
]
CURRENCY_SYMBOLS = ["$", "€", "£"]

# Longest first so "dollars" wins over "dollar"
CURRENCY_PATTERN = "(?:{words}|{symbols})".format(
    words="|".join(sorted((re.escape(w) for w in CURRENCY_WORDS), key=len, reverse=True)),
    symbols="|".join(re.escape(s) for s in CURRENCY_SYMBOLS),
)
CURRENCY_RE = re.compile(rf"(?<!\w){CURRENCY_PATTERN}(?!\w)", re.IGNORECASE)

# Spoken names for categories, including the ones older clients sent
CATEGORY_ALIASES = {
    "food": ExpenseCategory.FOOD.value,
    "food & dining": ExpenseCategory.FOOD.value,
    "dining": ExpenseCategory.FOOD.value,
    "transportation": ExpenseCategory.TRANSPORTATION.value,
    "transport": ExpenseCategory.TRANSPORTATION.value,
    "shopping": ExpenseCategory.SHOPPING.value,
    "groceries": ExpenseCategory.SHOPPING.value,
    "entertainment": ExpenseCategory.ENTERTAINMENT.value,
    "health": ExpenseCategory.HEALTH.value,
    "utilities": ExpenseCategory.UTILITIES.value,
    "travel": ExpenseCategory.TRAVEL.value,
    "bills": ExpenseCategory.BILLS.value,
    "education": ExpenseCategory.EDUCATION.value,
    "others": ExpenseCategory.OTHERS.value,
    "other": ExpenseCategory.OTHERS.value,
}

# Category names accepted after an explicit marker ("lunch 15 in food")
EXPLICIT_CATEGORY_WORDS = [
    "transportation", "transport", "food", "shopping", "entertainment",
    "health", "utilities", "travel", "bills", "education", "others", "other",
]
EXPLICIT_CATEGORY_PATTERN = "(?:{})".format("|".join(EXPLICIT_CATEGORY_WORDS))
CATEGORY_MARKERS = ["in", "for", "under", "as"]
CATEGORY_MARKER_RE = re.compile(
    r"(?<!\w)(?:{markers})\s+(?:category\s+)?{category}(?!\w)".format(
        markers="|".join(CATEGORY_MARKERS),
        category=EXPLICIT_CATEGORY_PATTERN,
    ),
    re.IGNORECASE,
)

# Category → keywords. Order matters: ties go to the earlier category.
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    ExpenseCategory.FOOD.value: [
        "coffee", "lunch", "dinner", "breakfast", "food", "restaurant", "meal",
        "snack", "drink", "pizza", "burger", "sandwich", "salad", "sushi",
        "kebab", "shawarma", "falafel", "ice cream", "dessert", "cake",
        "bread", "milk", "eggs", "meat", "chicken", "fish", "juice", "tea",
        "قهوة", "غدا", "عشا", "فطار", "أكل", "اكل", "مطعم", "شاي", "عصير",
    ],
    ExpenseCategory.TRANSPORTATION.value: [
        "uber", "taxi", "bus", "metro", "subway", "train", "gas", "fuel",
        "petrol", "parking", "transport", "car", "bike", "scooter", "lyft",
        "ride", "fare", "careem", "toll",
        "تاكسي", "اوبر", "أوبر", "مترو", "بنزين", "مواصلات", "اتوبيس", "عربية",
    ],
    ExpenseCategory.SHOPPING.value: [
        "groceries", "grocery", "supermarket", "market", "clothes", "shopping",
        "store", "shirt", "shoes", "dress", "pants", "jacket", "bag",
        "accessories", "jewelry", "watch", "perfume", "cosmetics", "makeup",
        "detergent", "toiletries", "household",
        "سوبر ماركت", "بقالة", "هدوم", "لبس", "جزمة", "شنطة",
    ],
    ExpenseCategory.ENTERTAINMENT.value: [
        "movie", "cinema", "game", "entertainment", "show", "concert",
        "theater", "music", "festival", "party", "club", "karaoke", "bowling",
        "arcade", "tickets",
        "سينما", "فيلم", "حفلة", "لعبة",
    ],
    ExpenseCategory.HEALTH.value: [
        "medicine", "doctor", "pharmacy", "health", "medical", "hospital",
        "clinic", "dental", "dentist", "glasses", "vitamins", "supplements",
        "gym", "fitness", "yoga", "massage", "therapy",
        "دوا", "دواء", "دكتور", "صيدلية", "مستشفى", "جيم",
    ],
    ExpenseCategory.UTILITIES.value: [
        "electricity", "water", "internet", "phone", "utility", "cable",
        "streaming", "netflix", "spotify", "subscription", "recharge",
        "كهربا", "كهرباء", "انترنت", "موبايل", "رصيد",
    ],
    ExpenseCategory.TRAVEL.value: [
        "hotel", "flight", "travel", "vacation", "trip", "booking", "airbnb",
        "hostel", "resort", "tour", "souvenir", "passport", "visa",
        "فندق", "طيارة", "سفر", "رحلة",
    ],
    ExpenseCategory.BILLS.value: [
        "rent", "mortgage", "insurance", "loan", "credit card", "debt", "bill",
        "installment",
        "إيجار", "ايجار", "قسط", "فاتورة", "تأمين",
    ],
    ExpenseCategory.EDUCATION.value: [
        "school", "tuition", "course", "books", "book", "class", "lesson",
        "university", "tutor",
        "مدرسة", "كورس", "كتب", "دروس", "جامعة",
    ],
}


def has_currency_token(text: str) -> bool:
    return CURRENCY_RE.search(text) is not None


def strip_currency(text: str) -> str:
    return CURRENCY_RE.sub(" ", text)


def resolve_category_alias(name: Optional[str]) -> Optional[str]:
    """Canonical category for a spoken or model-produced name, if known."""
    if not name:
        return None
    return CATEGORY_ALIASES.get(name.strip().lower())
