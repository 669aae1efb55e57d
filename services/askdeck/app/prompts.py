"""Prompt template for AskDeck answers.

The caller supplies the deck context and the question; both are inserted
verbatim. The trailing ``AskDeck Response:`` marker cues the model to answer
in the assistant's voice.
"""

ASKDECK_PROMPT_TEMPLATE = (
    "{context}\n\n---\n\nUser Question: {message}\n\nAskDeck Response:"
)


def compose_prompt(context: str, message: str) -> str:
    """Return the full prompt for one question about ``context``."""
    return ASKDECK_PROMPT_TEMPLATE.format(context=context, message=message)
