"""Token budget — count tokens and truncate snapshot text to fit within a limit."""

from __future__ import annotations

import functools

import tiktoken

TRUNCATION_MARKER = "[... truncated to fit token budget ...]"


@functools.cache
def _encoding() -> tiktoken.Encoding:
    # Loaded on first use; the encoding file may need a download
    return tiktoken.get_encoding("cl100k_base")


class TokenBudget:
    """Token counting for snapshot statistics and the --max-tokens limit."""

    def count(self, text: str) -> int:
        return len(_encoding().encode(text))

    def truncate(self, text: str, max_tokens: int) -> tuple[str, bool]:
        """
        Cut text to at most max_tokens (0 means unlimited), ending on a whole line.
        Returns (text, was_truncated).
        """
        if max_tokens <= 0:
            return text, False
        enc = _encoding()
        tokens = enc.encode(text)
        if len(tokens) <= max_tokens:
            return text, False

        kept = enc.decode(tokens[:max_tokens])
        # A partial line could show half a ref
        if "\n" in kept:
            kept = kept[: kept.rindex("\n")]
        return f"{kept}\n{TRUNCATION_MARKER}", True
