# betterask/fallback_tags.py
from typing import Dict, Iterable, List

from betterask.entities import PERSONA_INTENTS

# Static suggestions served when the model is unavailable or its output is unusable
FALLBACK_TAGS: Dict[str, Dict[str, List[str]]] = {
    "Teacher": {
        "Generate Questions": ["Multiple Choice Questions", "Critical Thinking Tasks", "Real World Application", "Blooms Taxonomy Levels", "Include Answer Key"],
        "Create Explanation": ["Step By Step Guide", "Include Visual Aids", "Real Life Examples", "Common Student Mistakes", "Interactive Class Elements"],
        "Simplify Weak": ["Focus Core Concepts", "Use Visual Analogies", "Easy Practice Problems", "Build Student Confidence", "Step By Step Guide"],
        "Use Analogy": ["Everyday Life Analogy", "Sports Related Analogy", "Cooking Baking Analogy", "Nature Based Analogy", "Modern Tech Analogy"],
        "Latest Research": ["Key Research Findings", "Research Methodology Details", "Practical Classroom Implications", "Brief Research Summary", "Include Academic Citations"],
    },
    "Parents": {
        "Help Homework": ["Step By Step Guide", "Dont Solve Directly", "Ask Guiding Questions", "Offer Encouragement Words", "Check Child Understanding"],
        "Help Project": ["Brainstorming Session Ideas", "Required Materials List", "Project Timeline Plan", "Creative Project Ideas", "Safety Precautions Tips"],
        "Explain Simply": ["Explain Like Five", "Real World Examples", "No Complex Jargon", "Use Visual Aids", "Include Fun Facts"],
        "Find Resources": ["Educational Video Links", "Readable Article Links", "Learning Game Links", "Book Recommendations List", "Printable Worksheet Links"],
        "Play & Learn": ["Educational Game Ideas", "Outdoor Activity Ideas", "DIY Craft Project", "Home Science Experiment", "Interactive Storytelling Time"],
    },
    "Students": {
        "Homework Help": ["Explain Core Concept", "Give Helpful Hint", "Show Similar Example", "Step By Step Guide", "Check My Answer"],
        "Project Ideas": ["Creative Project Ideas", "Feasible For Student", "Unique Project Angle", "Science Fair Project", "Artistic Project Ideas"],
        "Learn Concept": ["Deep Dive Explanation", "Brief Topic Summary", "Key Learning Points", "Quiz Me Now", "Real World Examples"],
        "Exam Prep": ["Practice Exam Questions", "Flashcard Study Points", "One Page Summary", "Time Management Tips", "List Key Formulas"],
        "Clear Doubt": ["Simple Clear Explanation", "Use Simple Analogy", "Show Concrete Example", "Describe Visual Diagram", "Explain Why How"],
    },
}

DEFAULT_PERSONA = "Students"


def get_fallback_tags(persona: str, intent: str, count: int, existing_tags: Iterable[str] = ()) -> List[str]:
    """
    Deterministic static list for (persona, intent), minus existing tags, cut to count.
    Unknown persona uses Students; unknown intent uses the persona's first intent.
    """
    by_intent = FALLBACK_TAGS.get(persona) or FALLBACK_TAGS[DEFAULT_PERSONA]
    persona_key = persona if persona in FALLBACK_TAGS else DEFAULT_PERSONA
    tags = by_intent.get(intent) or by_intent[PERSONA_INTENTS[persona_key][0]]
    excluded = {t.strip().lower() for t in existing_tags if isinstance(t, str)}
    return [t for t in tags if t.lower() not in excluded][:max(count, 0)]
