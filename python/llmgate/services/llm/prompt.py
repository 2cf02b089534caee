"""Provider-agnostic prompt rendering.

prompt.py produces a list of Turn objects from a CompletionRequest; each
adapter converts turns into its vendor's message format.

Prompt structure:
- System turn first (if present, or if the adapter supplies a default)
- The single user turn last (the gateway is stateless; callers flatten history)

Validation:
- Total prompt size must not exceed max_chars (100,000 default)
"""

from llmgate.services.llm.types import CompletionRequest, Turn

# Applied by OpenAI-compatible adapters when the caller gives no system prompt
DEFAULT_SYSTEM_PROMPT = "You are a helpful compliance assistant."

# Appended for vendors without a native JSON output switch
JSON_MODE_INSTRUCTION = "Respond only with a single valid JSON object and no surrounding text."

MAX_PROMPT_CHARS = 100_000


class PromptTooLargeError(ValueError):
    """Raised when the request prompt exceeds the size limit."""

    def __init__(self, actual_size: int, max_size: int):
        self.actual_size = actual_size
        self.max_size = max_size
        super().__init__(f"Prompt size {actual_size} exceeds max {max_size}")


def render_prompt(
    req: CompletionRequest,
    *,
    default_system_prompt: str | None = None,
    json_instruction: bool = False,
) -> list[Turn]:
    """Build the turn list for one request.

    Args:
        req: The completion request.
        default_system_prompt: Used when the request carries no system prompt.
        json_instruction: Append JSON_MODE_INSTRUCTION to the system turn when
            the request is in JSON mode.

    Returns:
        [system?, user] turns.
    """
    system = req.system_prompt or default_system_prompt
    if json_instruction and req.json_mode:
        system = f"{system}\n\n{JSON_MODE_INSTRUCTION}" if system else JSON_MODE_INSTRUCTION

    turns: list[Turn] = []
    if system:
        turns.append(Turn(role="system", content=system))
    turns.append(Turn(role="user", content=req.user_prompt))
    return turns


def split_system(turns: list[Turn]) -> tuple[str | None, list[Turn]]:
    """Separate the system turn for vendors that take it out-of-band."""
    system_prompt = None
    rest: list[Turn] = []
    for turn in turns:
        if turn.role == "system":
            system_prompt = turn.content
        else:
            rest.append(turn)
    return system_prompt, rest


def validate_prompt_size(req: CompletionRequest, max_chars: int = MAX_PROMPT_CHARS) -> None:
    """Reject prompts larger than max_chars before any provider is attempted.

    Raises:
        PromptTooLargeError: If total chars exceed limit.
    """
    total = req.prompt_chars
    if total > max_chars:
        raise PromptTooLargeError(total, max_chars)
