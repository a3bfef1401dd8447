"""Article text cleaning.

Provider descriptions are full of share buttons, "READ MORE" tails and
all-caps banners. clean() strips that noise; is_garbage() decides whether
what is left is still worth showing to a reader.
"""

import re

# Patterns removed anywhere in the text
_INLINE_NOISE: list[re.Pattern[str]] = [
    re.compile(r"\[.*?\]"),  # [Source] tags, [+1234 chars]
    re.compile(r"Follow Us On Social Media", re.IGNORECASE),
    re.compile(r"Share on (Facebook|Twitter|X|LinkedIn|WhatsApp|Reddit|Email)", re.IGNORECASE),
]

# Patterns that start a tail: everything after them is dropped
_TAIL_NOISE: list[re.Pattern[str]] = [
    re.compile(r"READ MORE:?.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"ALSO READ:?.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Related:.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Click here.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Subscribe (to|now|for).*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Sign up (for|to|now).*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"All rights reserved.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"(©|\(c\)|Copyright)\s*\d{4}.*$", re.IGNORECASE | re.DOTALL),
]

_TRAILING_ELLIPSIS = re.compile(r"(\.\.\.|…|â€¦)\s*$")
_ALL_CAPS_BANNER = re.compile(r"^[A-Z\s]{10,}")
_FIRST_REAL_SENTENCE = re.compile(r"\.\s+([A-Z][^.]+\.)")

# Headline fragments are joined by separators or glued without a space,
# e.g. "Lakers Beat Celtics | Warriors Sign GuardNets Fire Coach"
_FRAGMENT_SPLIT = re.compile(r"\s*[|•·–—]\s*|(?<=[a-z])(?=[A-Z])")

MIN_USABLE_LENGTH = 80


def clean(raw: str) -> str:
    """Strip boilerplate and navigation noise from provider text."""
    if not raw:
        return ""

    text = raw
    for pattern in _INLINE_NOISE:
        text = pattern.sub("", text)
    for pattern in _TAIL_NOISE:
        text = pattern.sub("", text)

    text = re.sub(r"\s+", " ", text).strip()
    text = _TRAILING_ELLIPSIS.sub("", text).strip()

    # All-caps banner in front of the article: keep the first real sentence
    if _ALL_CAPS_BANNER.match(text) and "." in text:
        match = _FIRST_REAL_SENTENCE.search(text)
        if match:
            text = match.group(1)

    return text


def _is_headline_fragment(fragment: str) -> bool:
    words = fragment.split()
    if len(words) < 2 or fragment.rstrip().endswith((".", "!", "?")):
        return False
    capitalized = sum(1 for w in words if w[:1].isupper() or w[:1].isdigit())
    return capitalized / len(words) >= 0.6


def _looks_like_headline_soup(text: str) -> bool:
    fragments = _FRAGMENT_SPLIT.split(text)
    return sum(1 for f in fragments if _is_headline_fragment(f)) >= 3


def is_garbage(text: str) -> bool:
    """True if text is too short or too mangled to use as a summary."""
    if not text or len(text) < MIN_USABLE_LENGTH:
        return True
    if not re.search(r"[a-z]", text):
        return True
    if not re.search(r"[.!?]", text):
        return True
    return _looks_like_headline_soup(text)
