# (c) Copyright Datacraft, 2026
"""Wrap a base query in one filtered derived table per policy predicate."""
import re
from typing import Sequence

from .models import RLSLayer

DEFAULT_ALIAS_PREFIX = "rls"

_TRAILING_TERMINATOR_RE = re.compile(r"[\s;]+$")


def _close_inner(query: str) -> str:
	"""Text to place before the closing parenthesis of a wrapping level."""
	# A line comment on the last line would swallow the rest of the wrapper
	if "--" in query.rsplit("\n", 1)[-1]:
		return query + "\n"
	return query


def _first_free_index(base_query: str, prefix: str) -> int:
	"""Lowest alias number not already used as <prefix>_<n> in the base query."""
	pattern = re.compile(rf"\b{re.escape(prefix)}_(\d+)\b", re.IGNORECASE)
	used = [int(match.group(1)) for match in pattern.finditer(base_query)]
	return max(used) + 1 if used else 0


def compose_layers(
	base_query: str,
	predicates: Sequence[tuple[str, str | None]],
	alias_prefix: str = DEFAULT_ALIAS_PREFIX,
) -> tuple[str, tuple[RLSLayer, ...]]:
	"""
	Compose a filtered query and describe each wrapping level.

	`predicates` holds (predicate, policy_id) pairs in priority order,
	highest first. The highest priority predicate ends up as the outermost
	WHERE; the last one wraps the base query directly. Aliases are numbered
	from the innermost level up.

	Returns the query and its layers listed innermost first.
	"""
	if not predicates:
		return base_query, ()

	query = _TRAILING_TERMINATOR_RE.sub("", base_query)
	index = _first_free_index(query, alias_prefix)
	layers = []
	for predicate, policy_id in reversed(predicates):
		alias = f"{alias_prefix}_{index}"
		query = f"SELECT * FROM ({_close_inner(query)}) AS {alias} WHERE {predicate}"
		layers.append(RLSLayer(alias=alias, predicate=predicate, policy_id=policy_id))
		index += 1
	return query, tuple(layers)


def compose(
	base_query: str,
	ordered_predicates: Sequence[str],
	alias_prefix: str = DEFAULT_ALIAS_PREFIX,
) -> str:
	"""
	Filter base_query by every predicate, highest priority outermost.

	With no predicates the base query comes back unchanged.
	"""
	query, _ = compose_layers(
		base_query,
		[(predicate, None) for predicate in ordered_predicates],
		alias_prefix=alias_prefix,
	)
	return query
