"""Post-processing of generated replies.

Generated text may carry action tags such as [ACTION:type=give,item=Coffee].
These are stripped from the visible reply and turned into ChatAction
objects. A suggested animation cue is inferred from keywords in what is
left.
"""

import logging
import re
from dataclasses import dataclass

from .storage import Role

logger = logging.getLogger(__name__)

ACTION_PATTERN = re.compile(r"\[ACTION:([^\]]+)\]")
TARGET_KEYS = ("item", "location", "name")


@dataclass
class ChatAction:
    """A non-verbal action for the in-world agent to perform."""

    type: str
    target: str = ""
    parameters: dict[str, str] | None = None


@dataclass
class ProcessedReply:
    """A reply ready to be shown in-world."""

    text: str
    actions: list[ChatAction] | None
    animation: str


def parse_action(body: str) -> ChatAction | None:
    """Parse the inside of an action tag.

    Args:
        body: Comma-separated key=value pairs, e.g. "type=give,item=Coffee".

    Returns:
        The action, or None if no type is given.
    """
    action_type: str | None = None
    target: str | None = None
    parameters: dict[str, str] = {}

    for segment in body.split(","):
        key, sep, value = segment.partition("=")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()

        if key == "type":
            action_type = value
        elif key in TARGET_KEYS:
            target = value
        else:
            parameters[key] = value

    if not action_type:
        return None

    return ChatAction(
        type=action_type,
        target=target or "",
        parameters=parameters or None,
    )


def parse_actions(reply: str) -> tuple[str, list[ChatAction] | None]:
    """Extract action tags from a reply.

    Every tag is removed from the text, including tags that fail to parse.

    Returns:
        The cleaned text and the parsed actions, None if there were none.
    """
    actions: list[ChatAction] = []
    clean = reply

    for match in ACTION_PATTERN.finditer(reply):
        action = parse_action(match.group(1))
        if action is not None:
            actions.append(action)
        else:
            logger.debug("Dropping action tag without a type: %s", match.group(0))
        clean = clean.replace(match.group(0), "").strip()

    return clean.strip(), actions or None


def infer_animation(
    text: str,
    role: Role,
    endearments: tuple[str, ...] | list[str] = ("darling",),
) -> str:
    """Suggest an animation cue for a reply.

    Rules are checked in order and the first match wins.

    Returns:
        "greet", "offer", "flirt", "think", or "" for no suggestion.
    """
    lowered = text.lower()

    if "*wave" in lowered or "hello" in lowered or "welcome" in lowered:
        return "greet"

    if any(word in lowered for word in ("*offer", "coffee", "tea", "drink")):
        return "offer"

    if "*wink" in lowered or (
        role is Role.PRIVILEGED
        and ("*smile" in lowered or any(term in lowered for term in endearments))
    ):
        return "flirt"

    if "*think" in lowered or "hmm" in lowered or "let me" in lowered:
        return "think"

    return ""


class ResponseProcessor:
    """Turns raw generated text into a ProcessedReply."""

    def __init__(self, endearments: list[str] | None = None) -> None:
        terms = ["darling"] if endearments is None else endearments
        self.endearments = tuple(term.lower() for term in terms)

    def process(self, raw_reply: str, role: Role) -> ProcessedReply:
        """Clean a reply, extract its actions, and pick an animation."""
        text, actions = parse_actions(raw_reply)
        return ProcessedReply(
            text=text,
            actions=actions,
            animation=infer_animation(text, role, self.endearments),
        )
