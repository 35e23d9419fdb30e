import re
from difflib import SequenceMatcher

from rapidfuzz.distance import Levenshtein

_CORPORATE_SUFFIX = re.compile(r"\s+(?:S\.?A\.?S?\.?|LTDA\.?|INC\.?|LLC\.?|CO\.?)$")


def similarity(left: str, right: str) -> float:
    """Case-insensitive edit-distance similarity in [0, 1]."""
    if not left and not right:
        return 1.0
    return Levenshtein.normalized_similarity(left.lower(), right.lower())


def normalize_merchant_name(name: str | None) -> str:
    if not name:
        return ""
    upper = " ".join(name.upper().split())
    return _CORPORATE_SUFFIX.sub("", upper).strip()


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def longest_common_substring(texts: list[str]) -> str:
    """
    Substring shared by every text, narrowed one text at a time.

    Exact for two texts. Case-sensitive; ties go to the earliest position in the first text.
    """
    if not texts:
        return ""
    shared = texts[0]
    for other in texts[1:]:
        if not shared:
            break
        match = SequenceMatcher(None, shared, other, autojunk=False).find_longest_match(
            0, len(shared), 0, len(other)
        )
        shared = shared[match.a:match.a + match.size]
    return shared


def common_prefix(texts: list[str]) -> str:
    if not texts:
        return ""
    prefix = texts[0]
    for text in texts[1:]:
        limit = min(len(prefix), len(text))
        index = 0
        while index < limit and prefix[index].lower() == text[index].lower():
            index += 1
        prefix = prefix[:index]
    return prefix


def common_suffix(texts: list[str]) -> str:
    reversed_prefix = common_prefix([text[::-1] for text in texts])
    return texts[0][len(texts[0]) - len(reversed_prefix):] if texts else ""
