# betterask/entities.py
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

# Canonical category order for grouped tag output
TAG_CATEGORIES = (
    "personaStyle",
    "addContext",
    "taskInstruction",
    "formatConstraints",
    "reasoningHelp",
)
ROLE_CATEGORY = "personaStyle"

PERSONA_INTENTS: Dict[str, List[str]] = {
    "Students": ["Homework Help", "Project Ideas", "Learn Concept", "Exam Prep", "Clear Doubt"],
    "Parents": ["Help Homework", "Help Project", "Explain Simply", "Find Resources", "Play & Learn"],
    "Teacher": ["Generate Questions", "Create Explanation", "Simplify Weak", "Use Analogy", "Latest Research"],
}

STAGE_TAG_COUNT = {1: 3, 2: 5}
MIN_TOPIC_LENGTH = 4


def tag_count_for_stage(stage: int) -> int:
    return STAGE_TAG_COUNT.get(stage, STAGE_TAG_COUNT[1])


class TagRequest(BaseModel):
    """
    Body of POST /api/tags/generate.
    Fields are optional so the endpoint can answer 400 itself instead of a 422.
    """
    topic: Optional[str] = None
    intent: Optional[str] = None
    persona: Optional[str] = None
    stage: int = 1
    selectedTags: List[str] = Field(default_factory=list)
    visibleTags: List[str] = Field(default_factory=list)

    def existing_tags(self) -> List[str]:
        seen = []
        for t in [*self.selectedTags, *self.visibleTags]:
            if isinstance(t, str) and t not in seen:
                seen.append(t)
        return seen


class TagResponse(BaseModel):
    success: bool
    tags: List[str] = Field(default_factory=list)
    groups: Optional[Dict[str, List[str]]] = None
    fallback: bool = False
    message: Optional[str] = None


class AnalyzeRequest(BaseModel):
    studentPrompt: Optional[str] = None


class ImprovedPrompt(BaseModel):
    role: Optional[str] = None
    context: Optional[str] = None
    task: str
    exemplars: Optional[List[str]] = None
    persona: Optional[str] = None
    format: Optional[str] = None
    tone: Optional[str] = None


class PromptAnalysis(BaseModel):
    score: Union[int, float]
    feedback: str
    improvedPrompt: ImprovedPrompt


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
