"""
Prompt construction for the flat delimiter-marked text format.

The model is instructed to answer with an optional `TITLE:` line followed by
CARD_START / Q: / A: / CARD_END blocks, which CardTextExtractor parses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flashcard_stream.config import WireFormat
from flashcard_stream.types.cards import MAX_FIELD_LENGTH, MAX_TITLE_LENGTH

if TYPE_CHECKING:
    from flashcard_stream.config import ClientConfig
    from flashcard_stream.types.cards import GenerationRequest

_TITLE_REQUIREMENTS = f"""First, generate a descriptive title for this flashcard set.

TITLE REQUIREMENTS:
- Use 3-6 words that capture both topic and scope/level
- Maximum {MAX_TITLE_LENGTH} characters total
- Be specific and descriptive, not generic
- Include context like level (Beginner/Advanced) or type (Essential/Key/Basic)
- Good examples: "Spanish Verbs for Beginners", "World War II Key Events"
- Bad examples: "Spanish", "History", "Chemistry"
"""

_RULES = """RULES:
- Use markdown emphasis: important words in **bold** or _italic_ (only proper nouns or dates)
- Questions must be clear, specific, and test key knowledge
- Answers must be concise, direct, and fact-based
- If timeline-related, include the DATE in the answer
- No filler or extra commentary
- Focus on definitions, key facts, formulas, or core concepts
"""


def build_system_prompt(count: int, generate_title: bool = False) -> str:
    """Build the system prompt describing the output format.

    Args:
        count: Number of flashcards to generate
        generate_title: Whether a TITLE: line should precede the cards

    Returns:
        System prompt text
    """
    sections = [
        f"You are a flashcard generator. Create exactly {count} flashcards about the given topic.",
    ]
    if generate_title:
        sections.append(_TITLE_REQUIREMENTS)

    output_format = "OUTPUT FORMAT:\n"
    if generate_title:
        output_format += "TITLE: [Your descriptive title here - 3-6 words]\n"
    output_format += (
        "Then output each flashcard in this exact format:\n\n"
        "CARD_START\n"
        f"Q: [Question here - max {MAX_FIELD_LENGTH} chars]\n"
        f"A: [Answer here - max {MAX_FIELD_LENGTH} chars]\n"
        "CARD_END\n"
    )
    sections.append(output_format)
    sections.append(_RULES)
    sections.append("Start generating now:")
    return "\n".join(sections)


def build_user_prompt(prompt: str, count: int) -> str:
    return f"Create {count} flashcards about: {prompt}"


def build_chat_payload(
    request: GenerationRequest,
    config: ClientConfig,
    *,
    stream: bool = True,
) -> dict[str, Any]:
    """Build an OpenAI-compatible chat completion request body.

    Args:
        request: Generation request
        config: Client configuration (model, temperature)
        stream: Whether to request a streamed response

    Returns:
        JSON-serializable request body
    """
    return {
        "model": config.model,
        "messages": [
            {
                "role": "system",
                "content": build_system_prompt(request.count, request.generate_title),
            },
            {"role": "user", "content": build_user_prompt(request.prompt, request.count)},
        ],
        "temperature": config.temperature,
        "stream": stream,
    }


def build_generation_payload(
    request: GenerationRequest,
    config: ClientConfig,
    *,
    stream: bool = True,
) -> dict[str, Any]:
    """Build the request body for the configured wire format.

    The chat_completions format talks to a model endpoint directly and needs
    the full prompt; the other formats post the request parameters to the
    generation endpoint, which builds the prompt server-side.
    """
    if config.wire_format is WireFormat.CHAT_COMPLETIONS:
        return build_chat_payload(request, config, stream=stream)
    return request.to_payload()
