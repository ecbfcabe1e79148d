"""Decoder for the claude ``stream-json`` output protocol.

Every function here is pure: it takes one parsed line and returns the facts
found in it. Unknown or malformed input never raises; it simply produces no
facts. The runner owns all accumulated state.
"""

import json
from typing import Any, Optional

from .models import (
    AssistantTextFact,
    DecodedLine,
    Fact,
    InitFact,
    PermissionDenialFact,
    PermissionFact,
    QuestionFact,
    QuestionOption,
    ResultFact,
    TokenFact,
    ToolResultFact,
    ToolUseFact,
)

ASK_USER_QUESTION_TOOL = "askuserquestion"

_EMPTY = DecodedLine()


def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a number on the wire
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_json_line(raw_line: str) -> Optional[dict]:
    """Parse a line as a JSON object, or return None.

    The CLI interleaves plain diagnostics with protocol lines, so anything
    that does not look like an object is skipped.
    """
    line = raw_line.strip()
    if not line.startswith("{"):
        return None
    try:
        parsed = json.loads(line)
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def normalize_tool_input(value: Any) -> Any:
    if isinstance(value, (dict, list, str, bool)) or _is_number(value):
        return value
    return None


def extract_text_from_content(content: Any) -> str:
    """Join the text blocks of a message content array with newlines."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    parts = []
    for item in content:
        if isinstance(item, str):
            text = item.strip()
        elif isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str):
            text = item["text"].strip()
        else:
            continue
        if text:
            parts.append(text)
    return "\n".join(parts)


def extract_text_delta(payload: dict) -> Optional[str]:
    if payload.get("type") != "stream_event":
        return None

    event = payload.get("event")
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None

    delta = event.get("delta")
    if not isinstance(delta, dict) or delta.get("type") != "text_delta":
        return None

    text = _str(delta.get("text"))
    return text or None


def extract_tool_uses(payload: dict) -> list[ToolUseFact]:
    if payload.get("type") != "assistant":
        return []

    message = payload.get("message")
    if not isinstance(message, dict) or not isinstance(message.get("content"), list):
        return []

    return [
        ToolUseFact(
            id=_str(block.get("id")),
            name=_str(block.get("name")),
            input=normalize_tool_input(block.get("input")),
        )
        for block in message["content"]
        if isinstance(block, dict) and block.get("type") == "tool_use"
    ]


def is_question_tool(tool_use: ToolUseFact) -> bool:
    return (tool_use.name or "").lower() == ASK_USER_QUESTION_TOOL


def extract_question(tool_use: ToolUseFact) -> QuestionFact:
    """Build a question from the first entry of an AskUserQuestion input."""
    question: dict = {}
    tool_input = tool_use.input
    if isinstance(tool_input, dict):
        questions = tool_input.get("questions")
        if isinstance(questions, list) and questions and isinstance(questions[0], dict):
            question = questions[0]

    options = []
    raw_options = question.get("options")
    if isinstance(raw_options, list):
        for option in raw_options:
            if isinstance(option, str) and option.strip():
                options.append(QuestionOption(label=option.strip()))
            elif isinstance(option, dict) and _str(option.get("label")):
                options.append(
                    QuestionOption(label=option["label"], description=_str(option.get("description")))
                )

    return QuestionFact(
        tool_use_id=tool_use.id,
        question=_str(question.get("question")),
        header=_str(question.get("header")),
        multi_select=question.get("multiSelect") is True,
        options=tuple(options),
        input=tool_input,
    )


def extract_tool_results(payload: dict) -> list[ToolResultFact]:
    if payload.get("type") != "user":
        return []

    message = payload.get("message")
    if (
        not isinstance(message, dict)
        or message.get("role") != "user"
        or not isinstance(message.get("content"), list)
    ):
        return []

    tool_use_result = payload.get("tool_use_result")
    if not isinstance(tool_use_result, dict):
        tool_use_result = {}

    stdout = (_str(tool_use_result.get("stdout")) or "").strip()
    stderr = (_str(tool_use_result.get("stderr")) or "").strip()
    interrupted = tool_use_result.get("interrupted") is True

    results = []
    for block in message["content"]:
        if not isinstance(block, dict) or block.get("type") != "tool_result":
            continue

        text = extract_text_from_content(block.get("content")).strip()
        if not text:
            text = "\n".join(part for part in (stdout, stderr) if part)

        results.append(
            ToolResultFact(
                tool_use_id=_str(block.get("tool_use_id")),
                is_error=block.get("is_error") is True,
                text=text or None,
                stdout=stdout or None,
                stderr=stderr or None,
                interrupted=interrupted,
            )
        )
    return results


def extract_permission_denials(payload: dict) -> list[PermissionDenialFact]:
    if payload.get("type") != "result" or not isinstance(payload.get("permission_denials"), list):
        return []

    return [
        PermissionDenialFact(
            tool_name=_str(entry.get("tool_name")),
            tool_use_id=_str(entry.get("tool_use_id")),
            tool_input=normalize_tool_input(entry.get("tool_input")),
        )
        for entry in payload["permission_denials"]
        if isinstance(entry, dict)
    ]


def decode_payload(payload: Any) -> DecodedLine:
    """Extract every fact carried by one parsed protocol object."""
    if not isinstance(payload, dict):
        return _EMPTY

    session_id = _str(payload.get("session_id")) or None
    payload_type = payload.get("type")

    if payload_type == "system" and payload.get("subtype") == "init":
        return DecodedLine(session_id=session_id, facts=(InitFact(data=payload),))

    facts: list[Fact] = []

    token = extract_text_delta(payload)
    if token:
        facts.append(TokenFact(text=token))

    if payload_type == "assistant":
        for tool_use in extract_tool_uses(payload):
            facts.append(tool_use)
            if is_question_tool(tool_use):
                facts.append(extract_question(tool_use))

        message = payload.get("message")
        if isinstance(message, dict):
            # Carried even when empty: the latest message replaces earlier text
            facts.append(AssistantTextFact(text=extract_text_from_content(message.get("content"))))

    facts.extend(extract_tool_results(payload))

    if payload_type == "result":
        denials = extract_permission_denials(payload)
        if denials:
            facts.append(PermissionFact(denials=tuple(denials)))
        is_error = payload.get("is_error")
        facts.append(
            ResultFact(
                data=payload,
                result=_str(payload.get("result")),
                is_error=is_error if isinstance(is_error, bool) else None,
            )
        )

    return DecodedLine(session_id=session_id, facts=tuple(facts))


def decode_line(raw_line: str) -> DecodedLine:
    """Decode one line of agent stdout."""
    payload = parse_json_line(raw_line)
    if payload is None:
        return _EMPTY
    return decode_payload(payload)
