"""Fixed word lists used by the text normalizer."""

import re

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "from", "up", "about", "into", "through", "during", "before",
    "after", "above", "below", "between", "among", "this", "that", "these",
    "those", "i", "you", "he", "she", "it", "we", "they", "me", "him",
    "her", "us", "them", "my", "your", "his", "its", "our", "their",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "can", "be", "am", "is", "are",
    "was", "were", "been", "being", "a", "an", "some", "any", "all",
    "every", "each", "much", "many", "more", "most", "less", "few",
    "little", "big", "small", "good", "bad", "new", "old", "first",
    "last", "next", "other", "same", "different", "own", "get", "got",
    "make", "made", "take", "took", "come", "came", "go", "went",
    "see", "saw", "know", "knew", "think", "thought", "say", "said",
    "tell", "told", "give", "gave", "find", "found", "feel", "felt",
})

PRODUCT_PATTERNS = [
    re.compile(r"whoop\s+\d+\.?\d*", re.IGNORECASE),
    re.compile(r"apple\s+watch", re.IGNORECASE),
    re.compile(r"fitbit", re.IGNORECASE),
    re.compile(r"garmin", re.IGNORECASE),
    re.compile(r"samsung\s+galaxy\s+watch", re.IGNORECASE),
]

FEATURE_PATTERNS = [
    re.compile(r"heart\s+rate", re.IGNORECASE),
    re.compile(r"sleep\s+tracking", re.IGNORECASE),
    re.compile(r"strain\s+score", re.IGNORECASE),
    re.compile(r"recovery", re.IGNORECASE),
    re.compile(r"battery\s+life", re.IGNORECASE),
    re.compile(r"water\s+resistance", re.IGNORECASE),
    re.compile(r"gps", re.IGNORECASE),
    re.compile(r"bluetooth", re.IGNORECASE),
]

EMOTION_WORDS = (
    "love", "hate", "amazing", "terrible", "awesome", "awful",
    "great", "bad", "good", "excellent", "horrible", "fantastic",
    "disappointed", "excited", "frustrated", "happy", "sad",
    "angry", "pleased", "annoyed", "impressed", "disgusted",
)

# Applied in order; bold must run before italic.
MARKUP_PATTERNS = [
    ("user_mention", re.compile(r"u/\w+"), " "),
    ("subreddit_mention", re.compile(r"r/\w+"), " "),
    ("bold", re.compile(r"\*\*(.*?)\*\*"), r" \1 "),
    ("italic", re.compile(r"\*(.*?)\*"), r" \1 "),
    ("strikethrough", re.compile(r"~~(.*?)~~"), r" \1 "),
    ("code", re.compile(r"`(.*?)`"), r" \1 "),
    ("url", re.compile(r"https?://\S+"), " "),
    ("spoiler", re.compile(r">!(.*?)!<?"), r" \1 "),
    ("quote", re.compile(r"^>\s*", re.MULTILINE), " "),
]

URL_PATTERN = re.compile(r"https?://\S+")
MENTION_PATTERN = re.compile(r"u/\w+")
