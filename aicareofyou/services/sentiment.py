"""Keyword based sentiment tagging for reflections."""

from __future__ import annotations

import re
from typing import Dict, Union

POSITIVE_WORDS = frozenset(
    {
        'happy', 'joy', 'love', 'amazing', 'wonderful', 'great', 'excellent',
        'fantastic', 'good', 'awesome', 'brilliant', 'perfect', 'beautiful',
        'success', 'achievement', 'grateful', 'thankful', 'blessed', 'excited',
        'motivated', 'confident', 'proud', 'peaceful', 'content', 'satisfied',
        'delighted', 'thrilled', 'optimistic',
    }
)

NEGATIVE_WORDS = frozenset(
    {
        'sad', 'angry', 'hate', 'terrible', 'awful', 'bad', 'horrible',
        'disappointed', 'frustrated', 'stressed', 'anxious', 'worried',
        'depressed', 'lonely', 'tired', 'exhausted', 'overwhelmed', 'difficult',
        'challenging', 'struggle', 'pain', 'hurt', 'upset', 'annoyed',
        'irritated', 'confused', 'lost', 'hopeless',
    }
)

SENTIMENTS = ('positive', 'neutral', 'negative')

_NON_WORD = re.compile(r'[^\w]')


def analyze_sentiment(text: str) -> Dict[str, Union[str, float]]:
    """Classify ``text`` as positive, neutral or negative.

    Words are matched case-insensitively with punctuation stripped. The
    positive share of matched words decides the label (above 0.6 positive,
    below 0.4 negative) and ``confidence`` grows with how many of the words
    matched at all, capped at 1.0. Text without any listed word is neutral
    with confidence 0.5.
    """

    words = [_NON_WORD.sub('', word.lower()) for word in (text or '').split()]
    positive = sum(1 for word in words if word in POSITIVE_WORDS)
    negative = sum(1 for word in words if word in NEGATIVE_WORDS)
    matched = positive + negative

    if matched == 0:
        return {'sentiment': 'neutral', 'confidence': 0.5}

    ratio = positive / matched
    confidence = min(matched / len(words) * 2, 1.0)

    if ratio > 0.6:
        label = 'positive'
    elif ratio < 0.4:
        label = 'negative'
    else:
        label = 'neutral'
    return {'sentiment': label, 'confidence': confidence}
