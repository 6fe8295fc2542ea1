"""Keyword based transcript analysis.

Both classifiers are pure functions over the tables below, so a result can
always be traced back to the phrases that produced it. Transcripts are a mix
of English, Hindi and Hinglish, which is why the tables are too.
"""

import re
from typing import Optional

from leadcaller.models import CallOutcome, Sentiment

POSITIVE_WORDS = (
    "yes", "interested", "great", "good", "perfect", "sure", "definitely", "absolutely",
    "हां", "रुचि", "अच्छा", "बढ़िया", "ज़रूर", "bilkul", "theek hai",
)

NEGATIVE_WORDS = (
    "no", "not interested", "busy", "later", "dont", "don't", "never",
    "नहीं", "रुचि नहीं", "baad mein", "नहीं चाहिए",
)

# Checked in order; the first category with a match wins. Appointment intent
# comes before interest so "interested, can we schedule a visit" is a booking.
OUTCOME_RULES: tuple[tuple[CallOutcome, tuple[str, ...]], ...] = (
    (CallOutcome.APPOINTMENT_BOOKED, (
        r"appointment", r"site visit", r"schedule (?:a |the )?(?:site )?(?:visit|meeting)",
        r"when can", r"book a visit",
        r"अपॉइंटमेंट", r"साइट विजिट", r"कब आ",
    )),
    (CallOutcome.INTERESTED, (
        r"(?<!not )(?<!n't )\binterested\b", r"tell me more", r"send (?:me )?details",
        r"रुचि(?! नहीं)", r"बताइए",
    )),
    (CallOutcome.NOT_INTERESTED, (
        r"not interested", r"no thank", r"don'?t call",
        r"रुचि नहीं", r"नहीं चाहिए",
    )),
    (CallOutcome.CALLBACK, (
        r"call back", r"callback", r"later",
        r"बाद में", r"baad mein",
    )),
)


def _phrase_pattern(phrase: str) -> re.Pattern:
    # Whole-phrase match: "no" must not count inside "know" or "not".
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)", re.IGNORECASE)


_POSITIVE_PATTERNS = [_phrase_pattern(p) for p in POSITIVE_WORDS]
_NEGATIVE_PATTERNS = [_phrase_pattern(p) for p in NEGATIVE_WORDS]
_OUTCOME_PATTERNS = [
    (outcome, [re.compile(p, re.IGNORECASE) for p in patterns])
    for outcome, patterns in OUTCOME_RULES
]


def count_matches(transcript: Optional[str], patterns: list[re.Pattern]) -> int:
    if not transcript:
        return 0
    return sum(len(pattern.findall(transcript)) for pattern in patterns)


def analyze_sentiment(transcript: Optional[str]) -> str:
    """Positive/Negative by majority of keyword occurrences; ties and empty text are Neutral."""
    positive = count_matches(transcript, _POSITIVE_PATTERNS)
    negative = count_matches(transcript, _NEGATIVE_PATTERNS)

    if positive > negative:
        return Sentiment.POSITIVE.value
    if negative > positive:
        return Sentiment.NEGATIVE.value
    return Sentiment.NEUTRAL.value


def determine_outcome(transcript: Optional[str]) -> str:
    """First matching category from OUTCOME_RULES, or Other."""
    if not transcript:
        return CallOutcome.OTHER.value

    for outcome, patterns in _OUTCOME_PATTERNS:
        if any(pattern.search(transcript) for pattern in patterns):
            return outcome.value
    return CallOutcome.OTHER.value
