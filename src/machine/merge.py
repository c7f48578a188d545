"""Merge rule joining a finished continuation onto the document."""

SENTENCE_ENDINGS = (".", "!", "?")


def merge_content(content: str, generated_text: str) -> str:
    """Append generated text to content.

    Blank generated text leaves content untouched. Otherwise both sides are
    trimmed and joined with a single space, unless the content already ends
    a sentence. Leading whitespace on the generated text always yields exactly
    one space, whatever its length.

    Args:
        content: Current document text.
        generated_text: Continuation to append.

    Returns:
        The merged document text.

    Example:
        >>> merge_content("Hello world", "The sun")
        'Hello world The sun'
        >>> merge_content("Hello world.", "The sun")
        'Hello world.The sun'
    """
    if not generated_text.strip():
        return content

    head = content.strip()
    tail = generated_text.strip()
    if not head:
        return tail

    # Leading whitespace collapses to one separator
    if head.endswith(SENTENCE_ENDINGS) and not generated_text[0].isspace():
        return head + tail
    return f"{head} {tail}"


__all__ = ["merge_content"]
