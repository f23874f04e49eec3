"""
Read-only advisors.

Module responsibilities (one concept, one module):
- esr.py: Recommendation engine (Equality, Sort, Range key ordering)
- classifier.py: Slow query severity bands, calls esr for HIGH queries
- usage.py: $indexStats / collStats usage reports per live collection
- monitor.py: currentOp / dbStats / serverStatus operational snapshot
"""

from indexsense.advisor.classifier import GENERIC_ADVICE, classify, severity_for
from indexsense.advisor.esr import (
    IndexSuggestion,
    KeyField,
    Phase,
    is_equality,
    is_range,
    recommend,
    recommend_index,
)
from indexsense.advisor.monitor import slow_operations, snapshot
from indexsense.advisor.usage import analyze, analyze_collection

__all__ = [
    "GENERIC_ADVICE",
    "IndexSuggestion",
    "KeyField",
    "Phase",
    "analyze",
    "analyze_collection",
    "classify",
    "is_equality",
    "is_range",
    "recommend",
    "recommend_index",
    "severity_for",
    "slow_operations",
    "snapshot",
]
