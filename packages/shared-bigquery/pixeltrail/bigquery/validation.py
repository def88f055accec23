"""
QueryValidator - keep attribution queries read-only.

Attribution never writes. Every statement sent to BigQuery must be a single
SELECT (optionally behind a WITH clause); anything that could modify data or
schema is rejected before a job is created.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass
class ValidationResult:
    """Result of query validation."""

    is_valid: bool
    message: str | None = None


class QueryValidator:
    """Validates SQL queries and identifiers."""

    READ_ONLY_PREFIX = re.compile(r"^\s*(SELECT|WITH)\b", re.IGNORECASE)

    BLOCKED_KEYWORDS = (
        "DROP",
        "DELETE",
        "TRUNCATE",
        "UPDATE",
        "INSERT",
        "MERGE",
        "CREATE",
        "ALTER",
        "GRANT",
        "REVOKE",
        "CALL",
        "EXECUTE",
    )

    _STRING_LITERAL = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"")
    _IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_-]*$")

    @classmethod
    def validate(cls, sql: str) -> ValidationResult:
        """
        Validate that a SQL query is a single read-only statement.

        String literals are ignored, so a LIKE '%pageview%' pattern never trips
        a keyword check.

        Raises:
            ValueError: If the query is empty, not a SELECT, contains several
                statements, or uses a data/schema modification keyword
        """
        if not sql or not sql.strip():
            raise ValueError("Query validation failed: empty query")

        code = cls._STRING_LITERAL.sub("''", sql)

        if not cls.READ_ONLY_PREFIX.match(code):
            raise ValueError("Query validation failed: only SELECT queries are allowed")

        if ";" in code.strip().rstrip(";"):
            raise ValueError("Query validation failed: multiple statements are not allowed")

        for keyword in cls.BLOCKED_KEYWORDS:
            if re.search(rf"\b{keyword}\b", code, re.IGNORECASE):
                raise ValueError(f"Query validation failed: {keyword} statements are not allowed")

        return ValidationResult(is_valid=True)

    @classmethod
    def sanitize_identifier(cls, identifier: str) -> str:
        """
        Sanitize a dataset/table identifier before it is interpolated into SQL.

        Raises:
            ValueError: If identifier contains invalid characters
        """
        if not identifier or not cls._IDENTIFIER.match(identifier):
            raise ValueError(f"Invalid identifier: {identifier}")

        return identifier
