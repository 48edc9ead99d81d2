# (c) Copyright Datacraft, 2026
"""
Placeholder substitution for policy predicate templates.

Two placeholder forms are recognised:

	{key}     scalar, rendered as one quoted string literal
	${key}    set, rendered as a parenthesised list of quoted literals,
	          meant to follow an IN / NOT IN operator

Example:
	>>> substitute("region = {region} AND role IN ${roles}",
	...            {"region": "EU", "roles": ["admin", "viewer"]})
	"region = 'EU' AND role IN ('admin','viewer')"

The template is scanned once. Every placeholder is collected before any
replacement is made and rendered values are never scanned again, so a
context value that itself looks like a placeholder stays literal text.
Templates are otherwise opaque; no SQL parsing happens here.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from datashield.core.exceptions import SubstitutionError

PLACEHOLDER_RE = re.compile(r"(\$?)\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class Placeholder:
	"""A placeholder occurrence in a template."""
	key: str
	is_set: bool
	start: int
	end: int


def find_placeholders(template: str) -> list[Placeholder]:
	"""All placeholder occurrences, left to right."""
	return [
		Placeholder(
			key=match.group(2),
			is_set=bool(match.group(1)),
			start=match.start(),
			end=match.end(),
		)
		for match in PLACEHOLDER_RE.finditer(template)
	]


def extract_placeholders(template: str) -> list[str]:
	"""Referenced context keys in order of first appearance."""
	keys: dict[str, None] = {}
	for placeholder in find_placeholders(template):
		keys.setdefault(placeholder.key, None)
	return list(keys)


def quote_literal(text: str) -> str:
	"""
	Quote text as a SQL string literal.

	Single quotes are doubled. Text containing a backslash also gets its
	backslashes doubled and the E prefix, the same output PostgreSQL's
	quote_literal() gives, so the literal reads the same whether or not
	the server treats backslash as an escape character.
	"""
	if "\x00" in text:
		raise SubstitutionError("Context values must not contain NUL characters")
	quoted = text.replace("'", "''")
	if "\\" in quoted:
		return "E'" + quoted.replace("\\", "\\\\") + "'"
	return "'" + quoted + "'"


def _scalar_text(key: str, value: Any) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, str):
		return value
	if isinstance(value, (int, float, Decimal, UUID)):
		return str(value)
	if isinstance(value, (datetime, date, time)):
		return value.isoformat()
	raise SubstitutionError(
		f"Context attribute {key!r} has unsupported type {type(value).__name__}"
	)


def render_scalar(key: str, value: Any) -> str:
	"""Render a value for the {key} form."""
	if isinstance(value, (list, tuple, set, frozenset, dict)):
		raise SubstitutionError(
			f"Context attribute {key!r} is a collection; use ${{{key}}} for set values"
		)
	return quote_literal(_scalar_text(key, value))


def render_set(key: str, value: Any) -> str:
	"""Render a value for the ${key} form."""
	if not isinstance(value, (list, tuple)):
		raise SubstitutionError(
			f"Context attribute {key!r} must be a sequence for ${{{key}}}, "
			f"got {type(value).__name__}"
		)
	items = []
	for item in value:
		if item is None or isinstance(item, (list, tuple, set, frozenset, dict)):
			raise SubstitutionError(f"Context attribute {key!r} must contain only scalar values")
		items.append(quote_literal(_scalar_text(key, item)))
	return "(" + ",".join(items) + ")"


def substitute(template: str, context: Mapping[str, Any]) -> str:
	"""
	Replace every placeholder in template with its rendered context value.

	Raises SubstitutionError listing every referenced attribute that is
	absent from context (None counts as absent), or when a value cannot be
	rendered in the form the placeholder asks for.
	"""
	placeholders = find_placeholders(template)
	if not placeholders:
		return template

	missing: dict[str, None] = {}
	for placeholder in placeholders:
		if context.get(placeholder.key) is None:
			missing.setdefault(placeholder.key, None)
	if missing:
		keys = list(missing)
		raise SubstitutionError(
			f"Missing context attributes: {', '.join(keys)}",
			missing_keys=keys,
		)

	parts = []
	position = 0
	for placeholder in placeholders:
		value = context[placeholder.key]
		parts.append(template[position:placeholder.start])
		if placeholder.is_set:
			parts.append(render_set(placeholder.key, value))
		else:
			parts.append(render_scalar(placeholder.key, value))
		position = placeholder.end
	parts.append(template[position:])
	return "".join(parts)
