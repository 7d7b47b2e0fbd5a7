import json
from typing import Dict, Iterable, List, Optional

from api import config
from etl.utils import normalize_text

MIN_TOKEN_LEN = 3

STOP_WORDS = {
    "the", "and", "but", "for", "nor", "yet", "are", "was", "were", "been",
    "being", "has", "have", "had", "does", "did", "doing", "this", "that",
    "these", "those", "there", "their", "theirs", "them", "they", "then",
    "than", "what", "which", "who", "whom", "whose", "when", "where", "why",
    "how", "with", "without", "from", "into", "onto", "about", "above",
    "below", "over", "under", "again", "very", "can", "could", "would",
    "should", "will", "shall", "may", "might", "must", "not", "you", "your",
    "yours", "yourself", "she", "her", "hers", "him", "his", "himself",
    "its", "itself", "our", "ours", "ourselves", "myself", "mine", "all",
    "any", "some", "each", "every", "such", "just", "also", "too", "only",
    "own", "same", "other", "more", "most", "much", "many", "tell", "please",
    "thee", "thou", "thy", "thine", "unto", "upon", "i'm", "it's", "don't",
}

CONCEPT_EXPANSIONS: Dict[str, List[str]] = {
    "love": ["beloved", "heart", "affection", "devotion", "loving"],
    "justice": ["fair", "righteous", "equity", "right"],
    "peace": ["tranquil", "serenity", "calm", "rest"],
    "soul": ["spirit", "spiritual", "essence", "inner"],
    "god": ["divine", "lord", "creator", "almighty"],
    "wisdom": ["knowledge", "understand", "know", "insight"],
    "truth": ["reality", "true", "sincere"],
    "death": ["eternal", "immortal", "die", "everlasting"],
    "friend": ["companion", "brother", "fellowship"],
    "world": ["earth", "earthly", "material", "dominion"],
    "wealth": ["riches", "prosperity", "poverty", "generous", "bounty"],
}

_CONCEPTS: Optional[Dict[str, List[str]]] = None


def _load_concepts() -> Dict[str, List[str]]:
    concepts = {key: list(values) for key, values in CONCEPT_EXPANSIONS.items()}
    path = config.CONCEPT_TABLE_PATH
    if not path:
        return concepts
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("concept table must be a JSON object")
    for key, values in data.items():
        if not isinstance(values, list):
            raise ValueError(f"concept {key!r} must map to a list")
        concepts[str(key).lower()] = [str(v).lower() for v in values if str(v).strip()]
    return concepts


def get_concepts() -> Dict[str, List[str]]:
    global _CONCEPTS
    if _CONCEPTS is None:
        _CONCEPTS = _load_concepts()
    return _CONCEPTS


def reset_concepts() -> None:
    global _CONCEPTS
    _CONCEPTS = None


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def tokenize(message: str) -> List[str]:
    normalized = normalize_text(message or "").lower()
    if not normalized:
        return []
    tokens = []
    for raw in normalized.split():
        token = raw.strip("'")
        if len(token) < MIN_TOKEN_LEN:
            continue
        if token.isdigit():
            continue
        if token in STOP_WORDS:
            continue
        tokens.append(token)
    return _dedupe(tokens)


def expand_terms(tokens: Iterable[str], concepts: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Expand tokens through the concept table.

    A concept key pulls in its synonyms; a synonym pulls in its concept key
    and the rest of that group. Tokens outside the table add nothing.
    """
    concepts = concepts if concepts is not None else get_concepts()
    terms: List[str] = []
    for token in tokens:
        if token in concepts:
            terms.append(token)
            terms.extend(concepts[token])
            continue
        for key, synonyms in concepts.items():
            if token in synonyms:
                terms.append(key)
                terms.extend(synonyms)
    return _dedupe(terms)
