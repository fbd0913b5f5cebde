# betterask/tag_service.py
import traceback
from typing import Optional

from betterask.backend_prompts import TAG_RESPONSE_SCHEMA, TAG_SYSTEM_PROMPT, TAG_USER_PROMPT
from betterask.base_utils import BaseUtils
from betterask.entities import TagRequest, TagResponse, tag_count_for_stage
from betterask.fallback_tags import get_fallback_tags
from betterask.google_helpers import logger
from betterask.llm_client import GatewayNotConfiguredError
from betterask.response_cache import GLOBAL_TAG_CACHE, ResponseCache, make_cache_key
from betterask.tag_validator import TagValidator


class TagRequestError(ValueError):
    """Missing required fields; answered with a 400 and no model call."""


class TagGenerationService(BaseUtils):
    """
    Validate -> CacheLookup -> ConfigCheck -> Generate -> Validate+Normalize -> Success
    Any failure from ConfigCheck on ends in the static fallback, always as a normal response.
    """

    def __init__(self, gateway, cache: Optional[ResponseCache] = None, validator: Optional[TagValidator] = None):
        self.gateway = gateway
        self.cache = cache if cache is not None else GLOBAL_TAG_CACHE
        self.validator = validator or TagValidator()

    def check_request(self, req: TagRequest) -> None:
        missing = [name for name in ("topic", "intent", "persona") if not (getattr(req, name) or "").strip()]
        if missing:
            raise TagRequestError(f"Missing required fields: {', '.join(missing)}")

    def _fallback_response(self, req: TagRequest, message: str) -> TagResponse:
        count = tag_count_for_stage(req.stage)
        tags = get_fallback_tags(req.persona, req.intent, count, req.existing_tags())
        self.color_print(f"[tags] fallback for '{req.topic}' ({req.persona}/{req.intent}): {message}", color="yellow")
        return TagResponse(success=False, tags=tags, groups=None, fallback=True, message=message)

    def _from_cache(self, key: str, req: TagRequest) -> Optional[TagResponse]:
        cached = self.cache.get(key)
        if cached is None:
            return None
        groups, flat = self.validator.refilter(cached.groups or {}, req.existing_tags())
        if not flat:
            return None
        logger.debug(f"[tags] cache hit {key}")
        return TagResponse(success=True, tags=flat, groups=groups, fallback=False)

    async def generate(self, req: TagRequest) -> TagResponse:
        self.check_request(req)
        logger.debug(f"[tags] request topic={req.topic!r} intent={req.intent!r} persona={req.persona!r} stage={req.stage}")

        key = make_cache_key(req.topic, req.intent, req.persona, req.stage)
        hit = self._from_cache(key, req)
        if hit is not None:
            return hit

        if not self.gateway.is_configured:
            logger.warning("[tags] Gemini API not configured, serving static tags")
            return self._fallback_response(req, "Gemini API not configured")

        count = tag_count_for_stage(req.stage)
        existing = req.existing_tags()
        try:
            # ---------- 1) GENERATE ----------
            system_instruction = self.unsafe_string_format(
                TAG_SYSTEM_PROMPT,
                existing_tags=", ".join(existing) or "(none)",
                count=count,
            )
            user_instruction = self.unsafe_string_format(
                TAG_USER_PROMPT,
                count=count,
                topic=req.topic.strip(),
                persona=req.persona,
                intent=req.intent,
                stage=req.stage,
            )
            raw = await self.gateway.generate(
                system_instruction,
                user_instruction,
                TAG_RESPONSE_SCHEMA,
                temperature=0.7,
            )

            # ---------- 2) VALIDATE + NORMALIZE ----------
            groups, flat = self.validator.validate(raw, existing)
            groups, flat = self.validator.limit(groups, flat, count)
        except GatewayNotConfiguredError as e:
            return self._fallback_response(req, str(e))
        except Exception as e:
            logger.warning(f"[tags] generation failed: {e}")
            logger.debug(traceback.format_exc())
            return self._fallback_response(req, str(e) or "Tag generation failed")

        response = TagResponse(success=True, tags=flat, groups=groups, fallback=False)
        self.cache.put(key, response)
        return response
