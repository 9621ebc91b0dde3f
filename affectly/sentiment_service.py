import re
import logging
from collections import namedtuple

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from affectly.errors import ClassifierError

logger = logging.getLogger(__name__)

Analysis = namedtuple("Analysis", ["sentiment", "emotions"])

# Stored when the classifier is unavailable so the entry is never lost
NEUTRAL_ANALYSIS = Analysis(sentiment=None, emotions=[])

# Keyword lexicon for emotion tagging
EMOTION_KEYWORDS = {
    "joy": {"happy", "glad", "joy", "joyful", "great", "awesome", "fun", "excited", "delighted", "cheerful"},
    "sadness": {"sad", "down", "lonely", "cry", "cried", "miss", "upset", "hurt", "unhappy", "depressed"},
    "anger": {"angry", "mad", "furious", "annoyed", "irritated", "hate", "frustrated", "rage"},
    "fear": {"afraid", "scared", "anxious", "worried", "nervous", "panic", "fear", "terrified", "stressed"},
    "surprise": {"surprised", "shocked", "unexpected", "amazed", "sudden", "wow"},
    "love": {"love", "loved", "adore", "caring", "affection", "together"},
    "optimism": {"hope", "hopeful", "optimistic", "better", "looking", "forward", "confident", "progress"},
    "gratitude": {"grateful", "thankful", "thanks", "appreciate", "blessed"},
}

_WORD_RE = re.compile(r"\b[a-z']+\b")


def sentiment_label(compound):
    if compound >= 0.05:
        return "POSITIVE"
    elif compound <= -0.05:
        return "NEGATIVE"
    return "NEUTRAL"


class SentimentClassifier:
    """VADER sentiment plus keyword emotion tagging."""

    def __init__(self, analyzer=None):
        self.analyzer = analyzer or SentimentIntensityAnalyzer()

    def analyze(self, text):
        if not text or not text.strip():
            raise ClassifierError("Nothing to analyze")

        try:
            compound = self.analyzer.polarity_scores(text)["compound"]
        except Exception as e:
            raise ClassifierError(f"Sentiment model failed: {e}") from e

        label = sentiment_label(compound)
        # Confidence in the chosen label
        score = abs(compound) if label != "NEUTRAL" else 1 - abs(compound)

        return Analysis(
            sentiment={"label": label, "score": round(score, 4)},
            emotions=self.emotions(text),
        )

    @staticmethod
    def emotions(text):
        """Ranked [{label, score}] for every emotion with a keyword hit."""
        words = _WORD_RE.findall(text.lower())
        hits = {}
        for word in words:
            for emotion, keywords in EMOTION_KEYWORDS.items():
                if word in keywords:
                    hits[emotion] = hits.get(emotion, 0) + 1

        total = sum(hits.values())
        if not total:
            return []
        ranked = sorted(hits.items(), key=lambda kv: kv[1], reverse=True)
        return [{"label": emotion, "score": round(count / total, 4)} for emotion, count in ranked]
