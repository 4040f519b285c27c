"""Query execution package."""

from lyvo.queries.executor import QueryExecutionError, QueryExecutor, resolve_time_reference

__all__ = ["QueryExecutionError", "QueryExecutor", "resolve_time_reference"]
