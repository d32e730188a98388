"""Unique tag generation for stored connections."""

from __future__ import annotations

from collections.abc import Iterable

from schiba.errors import ValidationError
from schiba.models import TagGenerationResult

MAX_TAG_LENGTH = 50

# Auto-generated tags walk the Greek alphabet in order
GREEK_LETTERS = (
    "alpha",
    "beta",
    "gamma",
    "delta",
    "epsilon",
    "zeta",
    "eta",
    "theta",
    "iota",
    "kappa",
    "lambda",
    "mu",
    "nu",
    "xi",
    "omicron",
    "pi",
    "rho",
    "sigma",
    "tau",
    "upsilon",
    "phi",
    "chi",
    "psi",
    "omega",
)


def validate_tag(tag: str) -> None:
    """Reject empty tags, tags with whitespace, and tags over 50 characters."""
    if not tag or not tag.strip():
        raise ValidationError("Tag cannot be empty")
    if any(ch.isspace() for ch in tag):
        raise ValidationError(f"Tag '{tag}' must not contain whitespace")
    if len(tag) > MAX_TAG_LENGTH:
        raise ValidationError(f"Tag '{tag}' is longer than {MAX_TAG_LENGTH} characters")


def _with_suffix(base: str, suffix: int) -> str:
    """``base-N``, with ``base`` shortened so the result fits MAX_TAG_LENGTH."""
    tail = f"-{suffix}"
    return base[: MAX_TAG_LENGTH - len(tail)] + tail


class TagGenerator:
    """Pick tags that do not collide with an existing set."""

    def __init__(self, existing_tags: Iterable[str]) -> None:
        self._existing = set(existing_tags)

    def get_unique_tag(self, candidate: str | None = None) -> TagGenerationResult:
        if candidate is None:
            return TagGenerationResult(final_tag=self._next_symbolic_tag())

        validate_tag(candidate)
        if candidate not in self._existing:
            return TagGenerationResult(final_tag=candidate)

        suffix = 1
        while _with_suffix(candidate, suffix) in self._existing:
            suffix += 1
        return TagGenerationResult(
            final_tag=_with_suffix(candidate, suffix),
            original_tag=candidate,
            was_conflict_resolved=True,
        )

    def _next_symbolic_tag(self) -> str:
        for letter in GREEK_LETTERS:
            if letter not in self._existing:
                return letter

        # Alphabet exhausted: alpha-2, alpha-3, ...
        suffix = 2
        while f"{GREEK_LETTERS[0]}-{suffix}" in self._existing:
            suffix += 1
        return f"{GREEK_LETTERS[0]}-{suffix}"
