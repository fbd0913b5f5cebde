# betterask/prompt_assembly.py
from typing import Optional, Sequence, Union
from urllib.parse import quote

from betterask.entities import ROLE_CATEGORY, ImprovedPrompt

DEFAULT_PROMPT_TEMPLATE = (
    'Explain "{topic}" clearly and simply for a {persona} whose goal is {intent}, '
    "keeping the content accurate and appropriate for that audience."
)
DEFAULT_ROLE_LINE = "Act as an expert educator who explains ideas clearly and accurately."
CLOSING_INSTRUCTION = (
    "Please generate a response that directly addresses the topic and intent, "
    "strictly adhering to the requirements above."
)


def _tag_text(tag) -> str:
    return (tag if isinstance(tag, str) else getattr(tag, "text", "")).strip()


def _tag_category(tag) -> Optional[str]:
    return None if isinstance(tag, str) else getattr(tag, "category", None)


def assemble_prompt(
    topic: str,
    persona: str,
    intent: str,
    tags: Sequence[Union[str, object]] = (),
    class_level: Optional[int] = None,
    output_tags: Sequence[str] = (),
) -> str:
    """
    Builds the final prompt text. Pure: same arguments, same text.

    No tags: DEFAULT_PROMPT_TEMPLATE with the topic verbatim.
    With tags: a role line (first tag in the role category, else DEFAULT_ROLE_LINE),
    the context lines, the remaining tags as a numbered list in selection order,
    an "Output Format:" bullet list when output_tags are given, then CLOSING_INSTRUCTION.
    Output formats alone do not replace the default sentence.
    """
    topic = (topic or "").strip()
    texts = []
    role = None
    for tag in tags:
        text = _tag_text(tag)
        if not text or text in texts or text == role:
            continue
        if role is None and _tag_category(tag) == ROLE_CATEGORY:
            role = text
            continue
        texts.append(text)

    if not texts and role is None:
        return DEFAULT_PROMPT_TEMPLATE.format(topic=topic, persona=persona, intent=intent)

    lines = [f"Role: {role}." if role else f"Role: {DEFAULT_ROLE_LINE}"]
    lines.append(f"Topic: {topic}")
    lines.append(f"User Persona: {persona}")
    if class_level is not None:
        lines.append(f"Grade/Class Level: {class_level}")
    lines.append(f"User Intent: {intent}")
    if texts:
        lines.append("Key Requirements:")
        lines.extend(f"{i}. {text}" for i, text in enumerate(texts, start=1))
    formats = list(dict.fromkeys(t.strip() for t in output_tags if isinstance(t, str) and t.strip()))
    if formats:
        lines.append("Output Format:")
        lines.extend(f"- {text}" for text in formats)
    lines.append(CLOSING_INSTRUCTION)
    return "\n".join(lines)


def improved_prompt_text(p: Optional[ImprovedPrompt]) -> str:
    if p is None:
        return ""
    text = ""
    if p.role:
        text += f"As {p.role}, "
    if p.persona:
        text += f"adopting a {p.persona} persona, "
    if p.context:
        text += f"given the context that {p.context}, "
    text += f"{p.task.rstrip('.')}. "
    if p.tone:
        text += f"The tone should be {p.tone}. "
    if p.format:
        text += f"Please provide the output in the format of {p.format}."
    if p.exemplars:
        text += f" For example: {', '.join(p.exemplars)}."
    return text.strip()


def share_text(topic: str, intent: str, prompt: str, origin: str = "") -> str:
    text = f"*Topic:* {topic}\n*Intent:* {intent}\n\n*Prompt:*\n{prompt}"
    if origin:
        text += f"\n\nBuilt with BetterAskPrompt: {origin}"
    return text


def whatsapp_share_url(text: str) -> str:
    return f"https://wa.me/?text={quote(text, safe='')}"
