# betterask/tag_validator.py
import re
from typing import Dict, Iterable, List, Tuple

from betterask.base_utils import BaseUtils, JsonParseError
from betterask.entities import TAG_CATEGORIES

MIN_TAG_WORDS = 3
MAX_TAG_WORDS = 4

_SEPARATORS = re.compile(r"[-_/]+")
_PUNCTUATION = re.compile(r"[^\w\s]")


class TagValidationError(ValueError):
    pass


def normalize_tag(raw) -> str:
    """
    "explain step-by-step!" -> "Explain Step By Step"
    Separators become spaces, other punctuation is dropped, whitespace collapses,
    each word is title-cased.
    """
    if not isinstance(raw, str):
        return ""
    text = _SEPARATORS.sub(" ", raw)
    text = _PUNCTUATION.sub("", text)
    words = text.split()
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def is_valid_tag_shape(tag: str) -> bool:
    return MIN_TAG_WORDS <= len(tag.split()) <= MAX_TAG_WORDS


class TagValidator(BaseUtils):
    """
    Turns the model's JSON text into normalized, grouped tags.

    Accepts the categorized object (one array per category) or a flat array.
    Within a category the model's order is kept; categories come out in TAG_CATEGORIES order.
    A flat array is reported under "taskInstruction".
    """

    flat_category = "taskInstruction"

    def parse(self, raw_text: str):
        try:
            return self.load_fault_tolerant_json(raw_text)
        except JsonParseError as e:
            raise TagValidationError(f"Model output is not valid JSON: {e}") from e

    def _candidate_groups(self, parsed) -> Dict[str, list]:
        if isinstance(parsed, list):
            return {self.flat_category: parsed}
        if isinstance(parsed, dict):
            if isinstance(parsed.get("tags"), list) and not any(c in parsed for c in TAG_CATEGORIES):
                return {self.flat_category: parsed["tags"]}
            return {
                c: parsed.get(c) if isinstance(parsed.get(c), list) else []
                for c in TAG_CATEGORIES
            }
        raise TagValidationError(f"Unexpected model output type: {type(parsed).__name__}")

    def filter_tags(self, candidates: Iterable, excluded: set) -> List[str]:
        kept = []
        for candidate in candidates:
            tag = normalize_tag(candidate)
            if not tag or not is_valid_tag_shape(tag):
                continue
            key = tag.lower()
            if key in excluded:
                continue
            excluded.add(key)
            kept.append(tag)
        return kept

    def validate(self, raw_text: str, existing_tags: Iterable[str] = ()) -> Tuple[Dict[str, List[str]], List[str]]:
        """
        Returns (groups, flat). Raises TagValidationError on unparseable output
        or when no tag survives the filters.
        """
        parsed = self.parse(raw_text)
        candidates = self._candidate_groups(parsed)

        # existing tags are compared after normalization, case-insensitively;
        # the set also absorbs duplicates inside the model output
        excluded = {normalize_tag(t).lower() for t in existing_tags if t}
        excluded.update(t.lower() for t in existing_tags if isinstance(t, str))

        groups = {c: self.filter_tags(candidates.get(c, []), excluded) for c in TAG_CATEGORIES}
        flat = [t for c in TAG_CATEGORIES for t in groups[c]]
        if not flat:
            raise TagValidationError("No valid tags generated after validation")
        return groups, flat

    def refilter(self, groups: Dict[str, List[str]], existing_tags: Iterable[str]) -> Tuple[Dict[str, List[str]], List[str]]:
        """Drops already-known tags from a previously validated grouping (used on cache hits)."""
        excluded = {normalize_tag(t).lower() for t in existing_tags if t}
        kept = {c: [t for t in groups.get(c, []) if t.lower() not in excluded] for c in TAG_CATEGORIES}
        return kept, [t for c in TAG_CATEGORIES for t in kept[c]]

    def limit(self, groups: Dict[str, List[str]], flat: List[str], count: int) -> Tuple[Dict[str, List[str]], List[str]]:
        """Keeps the first `count` tags of the flat list; groups are rebuilt to match."""
        kept = flat[:max(count, 0)]
        keep = set(kept)
        return {c: [t for t in groups.get(c, []) if t in keep] for c in TAG_CATEGORIES}, kept
