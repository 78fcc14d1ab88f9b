"""
Lightweight text analysis helpers: cleanup, keywords, sentiment, readability.

All functions are pure; results are cached by the callers, not here.
"""

import re
from collections import Counter
from typing import Any, Dict, List

_CITATION_RE = re.compile(r"\[\d+\]")
_WS_RE = re.compile(r"\s+")
_KEYWORD_RE = re.compile(r"\b\w{3,}\b")
_WORD_RE = re.compile(r"[a-z']+")
_SENTENCE_RE = re.compile(r"[.!?]+")

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "an", "a", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "must", "can", "this", "that", "these", "those", "from", "its", "into", "not",
    "than", "then", "there", "their", "they", "which", "also", "such",
})

# AFINN-style valence scores (-5 .. +5)
SENTIMENT_LEXICON: Dict[str, int] = {
    # positive
    "good": 3, "great": 3, "excellent": 3, "amazing": 4, "awesome": 4,
    "fantastic": 4, "outstanding": 5, "superb": 5, "wonderful": 4, "love": 3,
    "loved": 3, "like": 2, "liked": 2, "enjoy": 2, "enjoyed": 2, "happy": 3,
    "glad": 3, "pleased": 3, "positive": 2, "best": 3, "better": 2, "nice": 3,
    "beautiful": 3, "brilliant": 4, "success": 2, "successful": 3, "win": 4,
    "winning": 4, "won": 3, "benefit": 2, "beneficial": 2, "improve": 2,
    "improved": 2, "improvement": 2, "progress": 2, "strong": 2, "safe": 1,
    "helpful": 2, "useful": 2, "effective": 2, "efficient": 2, "reliable": 2,
    "recommend": 2, "recommended": 2, "perfect": 3, "impressive": 3,
    "innovative": 2, "growth": 2, "thrilled": 5, "excited": 3, "exciting": 3,
    "hope": 2, "hopeful": 2, "trust": 1, "support": 2, "praise": 3,
    # negative
    "bad": -3, "terrible": -3, "awful": -3, "horrible": -3, "worst": -3,
    "worse": -3, "poor": -2, "hate": -3, "hated": -3, "dislike": -2,
    "sad": -2, "unhappy": -2, "angry": -3, "upset": -2, "fear": -2,
    "afraid": -2, "scared": -2, "negative": -2, "fail": -2, "failed": -2,
    "failure": -2, "problem": -2, "problems": -2, "issue": -1, "issues": -1,
    "risk": -2, "risky": -2, "danger": -2, "dangerous": -2, "crisis": -3,
    "disaster": -2, "loss": -3, "lost": -3, "decline": -1, "declined": -2,
    "weak": -2, "broken": -1, "bug": -2, "error": -2, "wrong": -2,
    "useless": -2, "disappointing": -2, "disappointed": -2, "annoying": -2,
    "slow": -2, "expensive": -1, "difficult": -1, "hard": -1, "pain": -2,
    "painful": -2, "war": -2, "death": -2, "kill": -3, "killed": -3,
    "corrupt": -3, "fraud": -4, "scam": -2, "catastrophic": -4,
}


def clean_wikipedia_content(content: str) -> str:
    """Remove ``[n]`` citation markers and collapse whitespace."""
    if not content:
        return ""
    content = _CITATION_RE.sub("", content)
    return _WS_RE.sub(" ", content).strip()


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    if not text or len(text) <= max_len:
        return text or ""
    return text[:max_len] + suffix


def extract_keywords(text: str, max_keywords: int = 10) -> List[Dict[str, Any]]:
    """
    Top keywords by frequency.

    Words shorter than three characters and common stop words are ignored;
    ties keep first-seen order.
    """
    if max_keywords < 1:
        raise ValueError("max_keywords must be >= 1")
    words = _KEYWORD_RE.findall((text or "").lower())
    counts = Counter(word for word in words if word not in STOP_WORDS)
    return [
        {"word": word, "frequency": frequency}
        for word, frequency in counts.most_common(max_keywords)
    ]


def analyze_sentiment(text: str) -> Dict[str, Any]:
    """
    Score text against the sentiment lexicon.

    Returns:
        score: summed valence
        comparative: score divided by token count
        positive / negative: matched words, in order of appearance
        label: Positive, Negative or Neutral
    """
    tokens = _WORD_RE.findall((text or "").lower())
    score = 0
    positive: List[str] = []
    negative: List[str] = []
    for token in tokens:
        value = SENTIMENT_LEXICON.get(token)
        if not value:
            continue
        score += value
        if value > 0:
            positive.append(token)
        else:
            negative.append(token)

    if score > 0:
        label = "Positive"
    elif score < 0:
        label = "Negative"
    else:
        label = "Neutral"

    return {
        "score": score,
        "comparative": score / len(tokens) if tokens else 0.0,
        "positive": positive,
        "negative": negative,
        "label": label,
    }


def word_count(text: str) -> int:
    return len((text or "").split())


def readability_score(text: str) -> float:
    """Coarse readability bucket from average words per sentence (1.0 = easiest)."""
    words = word_count(text)
    sentences = len([s for s in _SENTENCE_RE.split(text or "") if s.strip()])
    avg_words = words / max(sentences, 1)
    if avg_words > 20:
        return 0.3
    if avg_words > 15:
        return 0.6
    return 1.0
