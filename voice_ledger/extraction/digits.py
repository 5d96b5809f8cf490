"""
Digit normalization.

Transcripts of Arabic speech often carry Arabic-Indic digits ("١٥") that
the extractors' patterns do not recognise. They are mapped to ASCII before
any extraction runs. Only digits change; every other character is kept.
"""

ARABIC_INDIC_ZERO = 0x0660
EASTERN_ARABIC_INDIC_ZERO = 0x06F0

_DIGIT_TABLE = {
    **{ARABIC_INDIC_ZERO + i: str(i) for i in range(10)},
    **{EASTERN_ARABIC_INDIC_ZERO + i: str(i) for i in range(10)},
}


def normalize_digits(text: str) -> str:
    """Replace Arabic-Indic and Eastern Arabic-Indic digits with 0-9."""
    return text.translate(_DIGIT_TABLE)
