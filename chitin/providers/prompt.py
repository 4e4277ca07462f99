"""Chat prompt construction and reply parsing shared by remote backends."""

from typing import Dict, List, Optional

from chitin.providers.base import GenerationContext

SYSTEM_PROMPT = (
    "You are a shell command generator. Return exactly one executable command, "
    "no commentary, no markdown."
)


def build_context_details(context: GenerationContext) -> str:
    """
    Render working directory and session context as one line.

    Example:
        >>> build_context_details(GenerationContext("ls", "/tmp", "s1", ("a", "ls")))
        'pwd: /tmp; recent_prompts: a | ls'
    """
    details = [f"pwd: {context.pwd}"]
    if context.last_command:
        details.append(f"last_command: {context.last_command}")
    if context.history:
        details.append(f"recent_prompts: {' | '.join(context.history)}")
    return "; ".join(details)


def build_messages(context: GenerationContext) -> List[Dict[str, str]]:
    """Build the system + user chat messages for one request."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Task: {context.prompt}\nContext: {build_context_details(context)}",
        },
    ]


def first_command_line(text: Optional[str]) -> str:
    """
    Extract the command from a model reply.

    Models sometimes wrap the answer in a markdown fence despite the system
    prompt; fence lines are skipped and the first remaining non-empty line wins.
    Returns an empty string if there is nothing usable.
    """
    if not text:
        return ""
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("```"):
            continue
        return stripped
    return ""
