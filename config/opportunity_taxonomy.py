"""Opportunity types and the title keywords that imply them.

Entries are checked in order; the first type with a keyword contained in
the lowercased title wins. Titles matching nothing are typed "other".
"""

OPPORTUNITY_TYPES = ["event", "meeting", "appointment", "conference", "other"]

DEFAULT_OPPORTUNITY_TYPE = "other"

OPPORTUNITY_TYPE_KEYWORDS = [
    {
        "type": "conference",
        "keywords": ["conference", "summit"],
    },
    {
        "type": "event",
        "keywords": ["event", "workshop", "seminar"],
    },
    {
        "type": "meeting",
        "keywords": ["meeting", "call", "discussion"],
    },
    {
        "type": "appointment",
        "keywords": ["appointment", "interview"],
    },
]
