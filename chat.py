"""
Chat proxy: enriches the system prompt with course / semester / topic facts
found in the user's latest message, then forwards the conversation to an
OpenAI-compatible chat completions API.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

import config
from educational import classify, get_course_info, get_topic_info
from schemas import ChatMessage, IntentResult

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are LearnFlow Assistant, an AI helper for an educational platform. "
    "Provide concise, accurate information about academic topics, learning resources, "
    "and study techniques. Be friendly and supportive.\n\n"
    "When answering:\n"
    "1. For educational questions, provide clear explanations with examples\n"
    "2. For coding questions, provide well-commented code snippets\n"
    "3. For resource questions, give specific paths where materials can be found\n"
    "4. For course-specific questions, reference relevant course materials and topics"
)


class LLMUnavailable(RuntimeError):
    pass


class LLMError(RuntimeError):
    pass


def build_context(intent: IntentResult) -> List[str]:
    lines: List[str] = []
    if intent.course_code:
        course = get_course_info(intent.course_code)
        if course is not None:
            lines.append(f"The user is asking about {intent.course_code} ({course.name}): {course.description}")
            lines.append("Topics covered: " + ", ".join(course.topics) + ".")
            if intent.is_navigation:
                lines.append("Resources: " + "; ".join(f"{r.name} at {r.path}" for r in course.resources) + ".")
    if intent.semester_resources is not None:
        bundle = intent.semester_resources
        lines.append(
            f"Semester {intent.semester} materials are located at {bundle.path}. "
            f"Courses in this semester: {', '.join(bundle.courses)}."
        )
    if intent.topic:
        topic = get_topic_info(intent.topic)
        if topic is not None:
            parts = []
            if topic.languages:
                parts.append("languages: " + ", ".join(topic.languages))
            if topic.branches:
                parts.append("branches: " + ", ".join(topic.branches))
            parts.append("key concepts: " + ", ".join(topic.concepts))
            lines.append(f"Related {intent.topic} areas ({'; '.join(parts)}).")
    return lines


def last_user_message(messages: List[ChatMessage]) -> Optional[str]:
    for msg in reversed(messages):
        if msg.role == 'user':
            return msg.content
    return None


def prepare_messages(messages: List[ChatMessage]) -> Tuple[List[Dict[str, str]], IntentResult]:
    formatted = [{"role": m.role, "content": m.content} for m in messages]
    if not any(m["role"] == "system" for m in formatted):
        formatted.insert(0, {"role": "system", "content": DEFAULT_SYSTEM_PROMPT})

    text = last_user_message(messages)
    intent = classify(text) if text else IntentResult()
    context = build_context(intent)
    if context:
        system = next(m for m in formatted if m["role"] == "system")
        system["content"] = system["content"] + "\n\nContext for this question:\n" + "\n".join(context)
    return formatted, intent


def complete(messages: List[Dict[str, str]]) -> Dict[str, Any]:
    if not config.LLM_API_KEY:
        raise LLMUnavailable("LLM API key is not configured")
    url = f"{config.LLM_API_BASE_URL.rstrip('/')}/chat/completions"
    payload = {"model": config.LLM_MODEL, "messages": messages, "max_tokens": config.LLM_MAX_TOKENS}
    headers = {"Authorization": f"Bearer {config.LLM_API_KEY}"}
    try:
        with httpx.Client(timeout=config.LLM_TIMEOUT) as client:
            r = client.post(url, json=payload, headers=headers)
            r.raise_for_status()
            data = r.json()
        message = data["choices"][0]["message"]
    except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
        logger.error("Error calling LLM API: %s", e)
        raise LLMError(str(e)) from e
    if not isinstance(message, dict):
        logger.error("Malformed LLM reply message: %r", message)
        raise LLMError("Malformed message in LLM response")
    return message
