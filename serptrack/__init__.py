"""
SERP Brand Tracker

Checks where a brand's domains rank in search results:
1. Issues searches through a pool of rotating provider API keys
2. Classifies each result as OWN, COMPETITOR or UNKNOWN
3. Persists auto-check runs for ranking history
"""

__version__ = "0.1.0"
