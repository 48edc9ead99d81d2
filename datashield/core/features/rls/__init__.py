# (c) Copyright Datacraft, 2026
"""
Row-level security for dataset queries.

Rewrites a tenant's dataset query so that it only returns the rows a
user is allowed to see:
- policies scoped by tenant and dataset, ordered by priority
- user context resolved from roles, groups and profile attributes
- injection-safe substitution of scalar and set placeholders
- nested derived-table composition, one filter per policy
- fail-closed error handling: errors deny, never unfilter
"""
from .composer import compose, compose_layers
from .context import ContextResolver, flatten_profile
from .engine import RLSEngine
from .models import Policy, PolicyLevel, UserContext, RLSLayer, RLSResult
from .selector import PolicySelector, select_applicable
from .store import PolicyStore, InMemoryPolicyStore
from .substitution import substitute, extract_placeholders, quote_literal

__all__ = [
	# Models
	"Policy",
	"PolicyLevel",
	"UserContext",
	"RLSLayer",
	"RLSResult",
	# Store
	"PolicyStore",
	"InMemoryPolicyStore",
	# Pipeline
	"ContextResolver",
	"flatten_profile",
	"PolicySelector",
	"select_applicable",
	"substitute",
	"extract_placeholders",
	"quote_literal",
	"compose",
	"compose_layers",
	"RLSEngine",
]
