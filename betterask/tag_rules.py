# betterask/tag_rules.py
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class ConflictRule:
    name: str
    left: Tuple[str, ...]
    right: Tuple[str, ...]


# Checked in order; only the first matching rule is reported
CONFLICT_RULES: Tuple[ConflictRule, ...] = (
    ConflictRule("length", ("short", "brief", "concise", "summary", "summarize"), ("detailed", "comprehensive", "deep", "elaborate")),
    ConflictRule("pacing", ("step",), ("brief", "quick", "summary")),
    ConflictRule("tone", ("formal", "academic", "strict"), ("casual", "friendly", "fun", "playful")),
    ConflictRule("level", ("simple", "simply", "beginner", "basic"), ("advanced", "expert", "complex")),
)


@dataclass(frozen=True)
class ConflictWarning:
    rule: str
    first: str
    second: str

    @property
    def message(self) -> str:
        return f'These suggestions may conflict. You might want to choose either "{self.first}" OR "{self.second}".'


def _words(text: str) -> set:
    return set(re.findall(r"[a-z]+", (text or "").lower()))


def detect_conflict(tags: Iterable[str], rules: Iterable[ConflictRule] = CONFLICT_RULES) -> Optional[ConflictWarning]:
    """
    First rule for which two different selected tags hit opposite keyword sides.
    Tags are scanned in selection order.
    """
    tags = [t for t in tags if t]
    tokenized = [(t, _words(t)) for t in tags]
    for rule in rules:
        left, right = set(rule.left), set(rule.right)
        for i, (tag_a, words_a) in enumerate(tokenized):
            if not words_a & left:
                continue
            for j, (tag_b, words_b) in enumerate(tokenized):
                if i != j and words_b & right:
                    return ConflictWarning(rule.name, tag_a, tag_b)
    return None


def prompt_strength(selected_count: int) -> str:
    if selected_count >= 6:
        return "Expert"
    if selected_count >= 3:
        return "Good"
    return "Basic"


@dataclass(frozen=True)
class DetectedMeta:
    class_level: int = 10
    board: str = "CBSE"
    subject: str = "General"


_SUBJECT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("Mathematics", ("math", "algebra", "geometry")),
    ("Science", ("science", "physics", "chemistry", "biology")),
    ("English", ("english", "grammar", "literature")),
    ("Social Studies", ("history", "geography", "civics")),
]


def detect_meta(topic: str) -> DetectedMeta:
    topic_lower = (topic or "").lower()

    class_level = 10
    match = re.search(r"class\s*(\d+)|(\d+)th\s*class|grade\s*(\d+)", topic_lower)
    if match:
        class_level = int(next(g for g in match.groups() if g))

    if "icse" in topic_lower:
        board = "ICSE"
    elif "state" in topic_lower:
        board = "State Board"
    else:
        board = "CBSE"

    subject = "General"
    for name, keywords in _SUBJECT_KEYWORDS:
        if any(k in topic_lower for k in keywords):
            subject = name
            break

    return DetectedMeta(class_level=class_level, board=board, subject=subject)
