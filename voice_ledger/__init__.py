"""
Voice Ledger - Source Package

Turns a spoken sentence describing purchases into categorized,
deduplicated expense records with budget-threshold notifications.

DESIGN PRINCIPLES:
1. Speech → text → candidate items → verified, persisted expenses
2. Only total transcription failure stops a request
3. Enhancement stages (AI extraction, learning, budget checks) degrade quietly
4. Every step must be auditable
5. Providers and storage are swappable
"""

__version__ = "1.0.0"
__author__ = "Voice Ledger Team"
