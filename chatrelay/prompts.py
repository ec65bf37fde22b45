"""
Fixed model instructions: the chat persona and the transcript tool templates.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a friendly, concise assistant in a chat application. "
    "Answer clearly, prefer short paragraphs, and say so when you are unsure. "
    "Do not invent facts about the user."
)


@dataclass(frozen=True)
class ToolTemplate:
    kind: str
    lead_in: str
    instruction: str


TOOL_TEMPLATES = {
    "summarize": ToolTemplate(
        kind="summarize",
        lead_in="Here is a summary of your conversation:",
        instruction=(
            "Summarize the following conversation in a few sentences. "
            "Keep the key questions, answers and decisions."
        ),
    ),
    "next-steps": ToolTemplate(
        kind="next-steps",
        lead_in="Here are some suggested next steps:",
        instruction=(
            "Based on the following conversation, suggest up to five concrete next steps "
            "the user could take. Answer as a short bulleted list."
        ),
    ),
    "tasks": ToolTemplate(
        kind="tasks",
        lead_in="Here are the tasks I found in your conversation:",
        instruction=(
            "Extract every actionable task mentioned in the following conversation. "
            "Answer as a checklist, one task per line. If there are none, say so."
        ),
    ),
}

MIN_TOOL_TURNS = 2


def render_transcript(turns: list[dict]) -> str:
    lines = []
    for turn in turns:
        speaker = "User" if turn.get("role") == "user" else "Assistant"
        lines.append(f"{speaker}: {turn.get('text', '')}")
    return "\n".join(lines)


def build_tool_prompt(template: ToolTemplate, turns: list[dict]) -> str:
    return f"{template.instruction}\n\nConversation:\n{render_transcript(turns)}"
