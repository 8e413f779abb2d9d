"""
Custom moderation triggers.

A trigger is a named host event carrying an arbitrary payload. Each registered rule
says how to pull text out of the payload, what to do when the text is blocked, and
which backend profile to use. All triggers go through one pipeline:
extract -> scan -> rewrite or block.
"""

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from src.core.config import Settings, settings
from src.core.exception import ConfigurationError
from src.modules.moderation.enums import HookBehavior, RefType
from src.modules.moderation.schemas import HookOutcome
from src.modules.moderation.services.client import ModerationClient
from src.modules.moderation.services.event_logger import ModerationEventLogger

Extractor = Callable[[Any], Any]
Writer = Callable[[Any, str], Any]


def get_by_path(data: Mapping[str, Any], path: str) -> Any:
    current: Any = data
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return ""
        current = current[key]
    return current


def set_by_path(data: Mapping[str, Any], path: str, value: Any) -> Any:
    """Return a deep copy of `data` with an existing key replaced. Missing paths leave it unchanged."""
    updated = copy.deepcopy(data)
    keys = path.split(".")
    current: Any = updated
    for key in keys[:-1]:
        if not isinstance(current, dict) or key not in current:
            return updated
        current = current[key]
    if isinstance(current, dict) and keys[-1] in current:
        current[keys[-1]] = value
    return updated


def path_extractor(path: str = "") -> Extractor:
    """Text at a dotted key path, or the payload itself when no path is given."""
    if not path:
        return lambda payload: payload if isinstance(payload, str) else None
    return lambda payload: get_by_path(payload, path) if isinstance(payload, Mapping) else None


def path_writer(path: str = "") -> Writer:
    if not path:
        return lambda payload, value: value
    return lambda payload, value: set_by_path(payload, path, value) if isinstance(payload, Mapping) else payload


@dataclass
class HookRule:
    trigger: str
    extractor: Extractor
    writer: Writer
    behavior: HookBehavior = HookBehavior.SANITIZE
    profile_id: str | None = None

    @classmethod
    def for_path(
        cls,
        trigger: str,
        path: str = "",
        behavior: HookBehavior | str = HookBehavior.SANITIZE,
        profile_id: str | None = None,
    ) -> "HookRule":
        return cls(
            trigger=trigger,
            extractor=path_extractor(path),
            writer=path_writer(path),
            behavior=HookBehavior(behavior),
            profile_id=profile_id or None,
        )


class HookRegistry:
    def __init__(
        self,
        client: ModerationClient,
        events: ModerationEventLogger | None = None,
        config: Settings = settings,
    ):
        self.client = client
        self.events = events or ModerationEventLogger()
        self.config = config
        self.rules: dict[str, HookRule] = {}

    @classmethod
    def from_settings(
        cls,
        client: ModerationClient,
        events: ModerationEventLogger | None = None,
        config: Settings = settings,
    ) -> "HookRegistry":
        registry = cls(client, events, config)
        for entry in config.MODERATION_CUSTOM_HOOKS:
            if not entry.get("hook_name"):
                continue
            try:
                rule = HookRule.for_path(
                    trigger=entry["hook_name"],
                    path=entry.get("array_key") or "",
                    behavior=entry.get("behavior") or HookBehavior.SANITIZE,
                    profile_id=entry.get("profile_id"),
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid custom hook {entry['hook_name']!r}: {e}") from e
            registry.register(rule)
        return registry

    def register(self, rule: HookRule) -> None:
        self.rules[rule.trigger] = rule

    def __contains__(self, trigger: str) -> bool:
        return trigger in self.rules

    async def run(self, trigger: str, payload: Any) -> HookOutcome:
        outcome = HookOutcome(trigger=trigger, payload=payload)
        rule = self.rules.get(trigger)
        if rule is None:
            return outcome

        text = rule.extractor(payload)
        if not isinstance(text, str) or not text.strip():
            return outcome

        profile_id = rule.profile_id or self.config.profile_for("post_content")
        result = await self.client.scan(text, {"type": RefType.CUSTOM_HOOK.value, "hook": trigger}, profile_id)
        outcome.decision = result

        if not result.is_blocked:
            return outcome

        if rule.behavior == HookBehavior.BLOCK:
            outcome.blocked = True
            outcome.payload = rule.writer(payload, "")
            self.events.info("hook", "Custom trigger content blocked", {"hook": trigger, "reason": result.reason})
        elif result.safe_content:
            outcome.payload = rule.writer(payload, result.safe_content)

        return outcome
