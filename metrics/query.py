"""jq query evaluation over generic documents"""
from functools import lru_cache
from typing import Any, List, Tuple

import jq

from logging_config import get_logger

from .errors import QueryError
from .models import GenericValue


logger = get_logger(__name__)


@lru_cache(maxsize=1024)
def compile_query(query: str) -> Any:
    """Compile a jq program, caching by query text"""
    try:
        return jq.compile(query)
    except ValueError as e:
        raise QueryError(f"cannot compile query {query!r}: {e}") from e


def run_query(value: GenericValue, query: str) -> List[GenericValue]:
    """Run a query and return all results, raising QueryError on failure"""
    program = compile_query(query)
    try:
        return list(program.input_value(value))
    except ValueError as e:
        raise QueryError(f"query {query!r} failed: {e}") from e


def evaluate(value: GenericValue, query: str) -> List[GenericValue]:
    """Evaluate a user-supplied query.

    Query errors (syntax, compilation, runtime type errors) are logged and
    produce an empty result so one broken query cannot stop the other
    metrics of a target from updating.
    """
    try:
        return run_query(value, query)
    except QueryError as e:
        logger.warning("Query evaluation failed", query=query, error=str(e), event_type="query_error")
        return []


def stringify_label(value: GenericValue) -> str:
    """Render a query result as a label value.

    Strings pass through unquoted, everything else is rendered by jq's own
    ``tojson`` so numbers are spelled the way jq prints them.
    """
    if isinstance(value, str):
        return value
    return run_query(value, "tojson")[0]


def coerce_value(value: GenericValue) -> Tuple[float, bool]:
    """Convert a query result to a sample value.

    Returns ``(value, True)`` for numbers and ``(0.0, False)`` for anything
    else; the caller keeps the sample either way.
    """
    if isinstance(value, bool):
        return 0.0, False
    if isinstance(value, (int, float)):
        return float(value), True
    return 0.0, False

