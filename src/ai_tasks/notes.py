"""
Notes pipeline - validation, sanitising and formatting of markdown notes.

Run prepare_notes on user-supplied notes before handing them to a store;
the stores persist whatever string they receive.
"""

import re

from .errors import ValidationError

MAX_NOTES_LENGTH = 100_000

_CODE_FENCE = "```"
_BLOCKED_TAGS = ("script", "iframe", "object", "embed", "form", "input", "button", "style")
_BLOCKED_TAG_PATTERNS = [
	re.compile(rf"<{tag}[\s\S]*?</{tag}>", re.IGNORECASE) for tag in _BLOCKED_TAGS
]
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_HEADING = re.compile(r"^(#{1,6})([^#\s].*)$", re.MULTILINE)
_UNORDERED_ITEM = re.compile(r"^(\s*)([*+-])([^\s].*)$", re.MULTILINE)
_ORDERED_ITEM = re.compile(r"^(\s*)(\d+\.)([^\s].*)$", re.MULTILINE)


class NotesTooLargeError(ValidationError):
	"""Raised when notes exceed MAX_NOTES_LENGTH."""


class InvalidMarkdownError(ValidationError):
	"""Raised when code fences or inline code spans are unbalanced."""


def validate(content: str) -> None:
	"""
	Check size and balanced code markers.

	Raises:
		NotesTooLargeError: Content longer than MAX_NOTES_LENGTH
		InvalidMarkdownError: Odd number of ``` fences or of remaining backticks
	"""
	if len(content) > MAX_NOTES_LENGTH:
		raise NotesTooLargeError(
			f"notes size exceeds maximum allowed length ({len(content)} > {MAX_NOTES_LENGTH})"
		)

	fences = content.count(_CODE_FENCE)
	if fences % 2 != 0:
		raise InvalidMarkdownError("invalid markdown content: unbalanced code block")

	inline = content.count("`") - fences * 3
	if inline % 2 != 0:
		raise InvalidMarkdownError("invalid markdown content: unbalanced inline code")


def sanitize(content: str) -> str:
	"""Strip active HTML elements and normalise line endings."""
	content = content.strip()
	for pattern in _BLOCKED_TAG_PATTERNS:
		content = pattern.sub("", content)
	content = content.replace("\r\n", "\n").replace("\r", "\n")
	return _EXCESS_BLANK_LINES.sub("\n\n", content)


def format(content: str) -> str:
	"""Ensure a trailing newline and a space after heading and list markers."""
	if content and not content.endswith("\n"):
		content += "\n"
	content = _HEADING.sub(r"\1 \2", content)
	content = _UNORDERED_ITEM.sub(r"\1\2 \3", content)
	return _ORDERED_ITEM.sub(r"\1\2 \3", content)


def prepare_notes(content: str) -> str:
	"""Validate, sanitise and format notes in one step."""
	validate(content)
	return format(sanitize(content))
