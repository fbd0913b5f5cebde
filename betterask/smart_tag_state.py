# betterask/smart_tag_state.py
"""
Client-side tag selection session.

Holds persona / intent / topic, the tags on offer and the user's selection, and
derives everything else (conflict warning, prompt strength, final prompt) on read.

Flow
----
    set_topic()  -> DEBOUNCING -> (debounce window) -> load_tags() -> LOADING -> LOADED | FALLBACK
    select_intent() with a valid topic loads immediately.
    The first selection fetches stage-2 suggestions and merges them in.

Ordering: each load bumps a request generation; a response whose generation is no
longer current is dropped. Pending debounce timers compare a sequence number before
firing, so only the last keystroke inside the window triggers a load.
"""
import asyncio
import enum
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from betterask.entities import MIN_TOPIC_LENGTH, PERSONA_INTENTS, TAG_CATEGORIES
from betterask.google_helpers import logger
from betterask.kv_store import (
    LAST_PRESET_KEY,
    ONBOARDING_SEEN_KEY,
    RECENT_PROMPTS_KEY,
    KeyValueStore,
    load_recent_prompts,
    push_recent_prompt,
)
from betterask.prompt_assembly import assemble_prompt, share_text, whatsapp_share_url
from betterask.tag_rules import ConflictWarning, DetectedMeta, detect_conflict, detect_meta, prompt_strength

DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_MAX_SELECTED = 5
DEFAULT_MAX_VISIBLE = 8
INITIAL_REVEAL = 3
FLAT_CATEGORY = "taskInstruction"

DEFAULT_OUTPUT_TAGS = ("Bullet points", "Short summary")
PRESELECTED_OUTPUT_TAG = "Bullet points"
MAX_OUTPUT_SUGGESTIONS = 3
MAX_OUTPUT_SELECTED = 3

OFFLINE_MESSAGE = "You are offline. Showing offline suggestions."
FALLBACK_MESSAGE = "Using offline suggestions."


class TagState(str, enum.Enum):
    IDLE = "idle"
    TOPIC_TOO_SHORT = "topic_too_short"
    DEBOUNCING = "debouncing"
    LOADING = "loading"
    LOADED = "loaded"
    FALLBACK = "fallback"


@dataclass
class TagItem:
    id: str
    text: str
    category: str
    selected: bool = False


# Shown when the backend cannot be reached at all
LOCAL_FALLBACK_TAGS: Dict[str, List[tuple]] = {
    "Teacher": [
        ("Include Real Life Example", "addContext"),
        ("Explain Step By Step", "reasoningHelp"),
        ("Use Simple Analogy", "reasoningHelp"),
        ("Create Practice Questions", "taskInstruction"),
        ("Highlight Key Terms", "formatConstraints"),
    ],
    "Parents": [
        ("Explain Like Im Five", "personaStyle"),
        ("Give Fun Activity", "taskInstruction"),
        ("Use Daily Objects", "addContext"),
        ("Keep It Short", "formatConstraints"),
        ("Encourage Curious Questions", "personaStyle"),
    ],
    "Students": [
        ("Give Exam Tips", "taskInstruction"),
        ("Summarize Key Points", "formatConstraints"),
        ("Explain The Logic", "reasoningHelp"),
        ("Compare With Similar", "reasoningHelp"),
        ("Use Bullet Points", "formatConstraints"),
    ],
}


class SmartTagSession:

    def __init__(
        self,
        client=None,
        *,
        store: Optional[KeyValueStore] = None,
        persona: str = "Students",
        intent: Optional[str] = None,
        max_selected: int = DEFAULT_MAX_SELECTED,
        max_visible: int = DEFAULT_MAX_VISIBLE,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.client = client
        self.store = store
        self.persona = persona
        self.intent = intent
        self.max_selected = max_selected
        self.max_visible = max_visible
        self.debounce_seconds = debounce_seconds

        self.topic = ""
        self.class_level: Optional[int] = None
        self.detected_meta: Optional[DetectedMeta] = None
        self.available_tags: List[TagItem] = []
        self.selected_tags: List[TagItem] = []
        # output formats stay empty until the first load
        self.output_tags: List[str] = []
        self.selected_output_tags: List[str] = []
        self.state = TagState.IDLE
        self.warning: Optional[str] = None
        self.banner: Optional[str] = None
        self.online = True
        self._local_fallback = False

        self._ids = itertools.count(1)
        self._debounce_seq = 0
        self._request_gen = 0
        self._stage2_requested = False
        self._tasks: set = set()

    # -----------------------
    # Task helpers
    # -----------------------

    def _spawn(self, coro):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug("[session] no running event loop, skipping background load")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def settle(self) -> None:
        """Wait until no debounce timer or background load is pending."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel pending timers and loads; call on teardown."""
        self._debounce_seq += 1
        self._request_gen += 1
        for task in list(self._tasks):
            task.cancel()

    # -----------------------
    # Derived state
    # -----------------------

    @property
    def topic_is_valid(self) -> bool:
        return len(self.topic.strip()) >= MIN_TOPIC_LENGTH

    @property
    def selected_texts(self) -> List[str]:
        return [t.text for t in self.selected_tags]

    @property
    def selected_count(self) -> int:
        return len(self.selected_tags)

    @property
    def can_select_more(self) -> bool:
        return len(self.selected_tags) < self.max_selected

    @property
    def can_generate_prompt(self) -> bool:
        return bool(self.intent) and self.topic_is_valid and bool(self.selected_tags)

    @property
    def conflict_warning(self) -> Optional[ConflictWarning]:
        return detect_conflict(self.selected_texts)

    @property
    def strength(self) -> str:
        return prompt_strength(len(self.selected_tags))

    @property
    def final_prompt(self) -> str:
        if not self.topic_is_valid:
            return ""
        return assemble_prompt(
            self.topic,
            self.persona,
            self.intent or "",
            self.selected_tags,
            self.class_level,
            output_tags=self.selected_output_tags,
        )

    # -----------------------
    # Inputs
    # -----------------------

    def set_topic(self, topic: str) -> None:
        self.topic = topic or ""
        self.detected_meta = detect_meta(self.topic)
        self._debounce_seq += 1
        # any in-flight response now belongs to an older topic
        self._request_gen += 1

        if not self.topic_is_valid:
            self._clear_tags()
            self.state = TagState.TOPIC_TOO_SHORT if self.topic.strip() else TagState.IDLE
            return
        if not self.intent:
            self.state = TagState.IDLE
            return

        self.state = TagState.DEBOUNCING
        self._spawn(self._debounced_load(self._debounce_seq))

    async def _debounced_load(self, seq: int) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if seq != self._debounce_seq:
            return
        await self.load_tags()

    async def select_intent(self, intent: str) -> None:
        self.intent = intent
        self.warning = None
        self._clear_selection()
        self._debounce_seq += 1
        if self.topic_is_valid:
            await self.load_tags()

    async def set_persona(self, persona: str) -> None:
        if persona == self.persona:
            return
        self.persona = persona
        intents = PERSONA_INTENTS.get(persona)
        if intents:
            self.intent = intents[0]
        self._clear_selection()
        self.banner = f"Switched to {persona} mode. Suggestions updated."
        self._debounce_seq += 1
        if self.topic_is_valid:
            await self.load_tags()

    async def set_class_level(self, class_level: int) -> None:
        self.class_level = class_level
        self._clear_selection()
        self._debounce_seq += 1
        if self.topic_is_valid and self.intent:
            await self.load_tags()

    def set_online(self, online: bool) -> None:
        was_online, self.online = self.online, online
        if was_online and not online and self.topic_is_valid and self.intent:
            self._debounce_seq += 1
            self._request_gen += 1
            self._apply_local_fallback(OFFLINE_MESSAGE)
        elif not was_online and online and self.topic_is_valid and self.intent:
            # back online: replace the offline list with real suggestions
            self._debounce_seq += 1
            self._spawn(self.load_tags())

    # -----------------------
    # Loading
    # -----------------------

    def _request_body(self, stage: int) -> Dict[str, Any]:
        return {
            "topic": self.topic.strip(),
            "intent": self.intent,
            "persona": self.persona,
            "stage": stage,
            "selectedTags": self.selected_texts,
            "visibleTags": [t.text for t in self.available_tags],
        }

    async def load_tags(self) -> None:
        if not self.topic_is_valid or not self.intent:
            return
        self._request_gen += 1
        gen = self._request_gen
        self._stage2_requested = False

        if not self.online or self.client is None:
            self._apply_local_fallback(OFFLINE_MESSAGE)
            return

        self.state = TagState.LOADING
        try:
            response = await self.client.generate_tags(self._request_body(stage=1))
        except Exception as e:
            if gen != self._request_gen:
                return
            logger.warning(f"[session] tag request failed: {e}")
            self._apply_local_fallback(FALLBACK_MESSAGE)
            return

        if gen != self._request_gen:
            logger.debug(f"[session] dropping stale tag response (gen {gen} < {self._request_gen})")
            return
        self._apply_response(response or {})

    async def load_follow_up_tags(self) -> None:
        gen = self._request_gen
        if not self.online or self.client is None or self._local_fallback:
            self._merge_tags(self._local_fallback_items())
            return
        try:
            response = await self.client.generate_tags(self._request_body(stage=2))
        except Exception as e:
            logger.warning(f"[session] follow-up tag request failed: {e}")
            return
        if gen != self._request_gen:
            return
        self._merge_tags(self._items_from_response(response or {}))

    def _new_item(self, text: str, category: str) -> TagItem:
        return TagItem(id=f"tag-{next(self._ids)}", text=text, category=category)

    def _items_from_response(self, response: Dict[str, Any]) -> List[TagItem]:
        pairs = []
        groups = response.get("groups")
        if isinstance(groups, dict):
            for category in TAG_CATEGORIES:
                pairs.extend((text, category) for text in groups.get(category) or [])
        else:
            pairs.extend((text, FLAT_CATEGORY) for text in response.get("tags") or [])

        items, seen = [], set()
        for text, category in pairs:
            if not isinstance(text, str) or not text.strip() or text.lower() in seen:
                continue
            seen.add(text.lower())
            items.append(self._new_item(text.strip(), category))
        return items

    def _local_fallback_items(self) -> List[TagItem]:
        entries = LOCAL_FALLBACK_TAGS.get(self.persona) or LOCAL_FALLBACK_TAGS["Students"]
        return [self._new_item(text, category) for text, category in entries]

    def _apply_response(self, response: Dict[str, Any]) -> None:
        items = self._items_from_response(response)
        if not items:
            self._apply_local_fallback(response.get("message") or FALLBACK_MESSAGE)
            return

        self.available_tags = items[:INITIAL_REVEAL]
        self.selected_tags = []
        self.warning = None
        self._local_fallback = False
        self._reset_output_tags()
        if response.get("success") and not response.get("fallback"):
            self.state = TagState.LOADED
            self.banner = None
        else:
            self.state = TagState.FALLBACK
            self.banner = response.get("message") or "Using fallback suggestions."

    def _apply_local_fallback(self, message: str) -> None:
        self.available_tags = self._local_fallback_items()[:INITIAL_REVEAL]
        self.selected_tags = []
        self.warning = None
        self._local_fallback = True
        self._reset_output_tags()
        self._stage2_requested = False
        self.state = TagState.FALLBACK
        self.banner = message

    def _merge_tags(self, items: List[TagItem]) -> None:
        known = {t.text.lower() for t in self.available_tags}
        for item in items:
            if len(self.available_tags) >= self.max_visible:
                break
            if item.text.lower() in known:
                continue
            known.add(item.text.lower())
            self.available_tags.append(item)

    def _clear_selection(self) -> None:
        for t in self.available_tags:
            t.selected = False
        self.selected_tags = []

    def _clear_tags(self) -> None:
        self.available_tags = []
        self.selected_tags = []
        self._stage2_requested = False
        self._local_fallback = False
        self.output_tags = []
        self.selected_output_tags = []

    def _reset_output_tags(self) -> None:
        self.output_tags = list(DEFAULT_OUTPUT_TAGS)
        self.selected_output_tags = [PRESELECTED_OUTPUT_TAG]

    # -----------------------
    # Selection
    # -----------------------

    def toggle_tag(self, tag_id: str) -> bool:
        """
        Select or deselect a tag. Selecting past max_selected is refused with a
        warning and returns False; the selection is left untouched.
        """
        tag = next((t for t in self.available_tags if t.id == tag_id), None)
        if tag is None:
            return False

        if tag.selected:
            tag.selected = False
            self.selected_tags = [t for t in self.selected_tags if t.id != tag_id]
            self.warning = None
            return True

        if len(self.selected_tags) >= self.max_selected:
            self.warning = f"Maximum {self.max_selected} tags can be selected"
            return False

        tag.selected = True
        self.selected_tags = [*self.selected_tags, tag]
        self.warning = None
        if len(self.selected_tags) == 1 and not self._stage2_requested:
            # only counts as requested once a task is actually scheduled
            self._stage2_requested = self._spawn(self.load_follow_up_tags()) is not None
        return True

    def toggle_tag_text(self, text: str) -> bool:
        tag = next((t for t in self.available_tags if t.text == text), None)
        return self.toggle_tag(tag.id) if tag else False

    # -----------------------
    # Output formats
    # -----------------------

    def set_output_suggestions(self, suggestions) -> None:
        """Appends up to MAX_OUTPUT_SUGGESTIONS suggested formats after the defaults."""
        known = {t.lower() for t in DEFAULT_OUTPUT_TAGS}
        extra = []
        for text in suggestions or []:
            if not isinstance(text, str) or not text.strip() or text.strip().lower() in known:
                continue
            known.add(text.strip().lower())
            extra.append(text.strip())
        self.output_tags = [*DEFAULT_OUTPUT_TAGS, *extra[:MAX_OUTPUT_SUGGESTIONS]]
        self.selected_output_tags = [t for t in self.selected_output_tags if t in self.output_tags]

    def toggle_output_tag(self, text: str) -> bool:
        """
        Same contract as toggle_tag, for output formats: past MAX_OUTPUT_SELECTED the
        selection is left alone, a warning is set and False comes back.
        """
        if text not in self.output_tags:
            return False
        if text in self.selected_output_tags:
            self.selected_output_tags = [t for t in self.selected_output_tags if t != text]
            self.warning = None
            return True
        if len(self.selected_output_tags) >= MAX_OUTPUT_SELECTED:
            self.warning = f"Maximum {MAX_OUTPUT_SELECTED} output formats can be selected"
            return False
        self.selected_output_tags = [*self.selected_output_tags, text]
        self.warning = None
        return True

    # -----------------------
    # Output, history and presets
    # -----------------------

    def _save_to_history(self, prompt: str) -> list:
        entry = {
            "topic": self.topic.strip() or "Untitled",
            "intent": self.intent,
            "persona": self.persona,
            "prompt": prompt,
            "date": datetime.now(timezone.utc).isoformat(),
        }
        return push_recent_prompt(self.store, entry)

    def copy_prompt(self) -> str:
        prompt = self.final_prompt
        if prompt:
            self._save_to_history(prompt)
        return prompt

    def share_to_whatsapp(self, origin: str = "") -> str:
        prompt = self.final_prompt
        if not prompt:
            return ""
        self._save_to_history(prompt)
        return whatsapp_share_url(share_text(self.topic.strip(), self.intent or "", prompt, origin))

    @property
    def recent_prompts(self) -> list:
        return load_recent_prompts(self.store)

    async def use_recent_prompt(self, entry: dict) -> None:
        if entry.get("persona") in PERSONA_INTENTS:
            self.persona = entry["persona"]
        if entry.get("intent"):
            self.intent = entry["intent"]
        self._clear_selection()
        self.topic = entry.get("topic") or ""
        self.detected_meta = detect_meta(self.topic)
        self._debounce_seq += 1
        if self.topic_is_valid and self.intent:
            await self.load_tags()

    def clear_history(self) -> None:
        if self.store is not None:
            self.store.remove(RECENT_PROMPTS_KEY)

    @property
    def has_seen_onboarding(self) -> bool:
        return bool(self.store.get(ONBOARDING_SEEN_KEY, False)) if self.store is not None else False

    def complete_onboarding(self) -> None:
        if self.store is not None:
            self.store.set(ONBOARDING_SEEN_KEY, True)

    def save_preset(self) -> None:
        if self.store is not None:
            self.store.set(LAST_PRESET_KEY, {
                "persona": self.persona,
                "intent": self.intent,
                "class_level": self.class_level,
            })

    def apply_last_preset(self) -> bool:
        preset = self.store.get(LAST_PRESET_KEY) if self.store is not None else None
        if not isinstance(preset, dict):
            return False
        if preset.get("persona") in PERSONA_INTENTS:
            self.persona = preset["persona"]
        self.intent = preset.get("intent") or self.intent
        self.class_level = preset.get("class_level", self.class_level)
        return True

    def reset(self) -> None:
        self.close()
        self.intent = None
        self.topic = ""
        self.class_level = None
        self.detected_meta = None
        self._clear_tags()
        self.state = TagState.IDLE
        self.warning = None
        self.banner = None
