"""Parsing and reduction of fetched payloads."""

from __future__ import annotations

from periodic_worker.errors import ParseFailure

# Errors cross process boundaries and outlive the cycle; never carry payload text.
TOKEN_PREVIEW_CHARS = 32


def _is_integer_token(token: str) -> bool:
    digits = token[1:] if token[:1] in ("+", "-") else token
    # isdigit() alone accepts non-ASCII digits such as "²".
    return digits.isascii() and digits.isdigit()


def _preview(token: str) -> str:
    if len(token) <= TOKEN_PREVIEW_CHARS:
        return token
    return token[:TOKEN_PREVIEW_CHARS] + "..."


def parse_and_sum(data: str, *, delimiter: str = "_") -> int:
    """Parse a delimited integer payload and return the sum of its values.

    Every token must be an optionally signed run of ASCII digits. Anything
    else, including an empty payload or an empty token, raises ParseFailure.
    The failure only quotes the first few characters of the bad token.
    """

    if not delimiter:
        raise ValueError("delimiter must be non-empty")

    total = 0
    for index, token in enumerate(data.split(delimiter)):
        if not _is_integer_token(token):
            preview = _preview(token)
            raise ParseFailure(
                f"Malformed value at position {index} ({len(token)} chars): {preview!r}",
                index=index,
                token=preview,
            )
        try:
            total += int(token)
        except ValueError as e:
            # Digit strings beyond sys.get_int_max_str_digits() are refused by int().
            raise ParseFailure(
                f"Value at position {index} is too long ({len(token)} chars)",
                index=index,
                token=_preview(token),
            ) from e
    return total
