"""Custom exceptions for relgql with enhanced error messages."""

from typing import Optional, Dict, Any, List
import re
import uuid


class RelGQLError(Exception):
    """Base exception for all relgql errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Initialize relgql error with rich context.

        Args:
            message: The error message
            error_code: Optional error code for categorization
            context: Additional context about the error
            suggestions: List of suggestions to fix the error
            correlation_id: ID to track this error across logs
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "RELGQL_ERROR"
        self.context = context or {}
        self.suggestions = suggestions or []
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
            "suggestions": self.suggestions,
            "correlation_id": self.correlation_id
        }

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]

        if self.context:
            parts.append(f"Context: {self.context}")

        if self.suggestions:
            parts.append("Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"  {i}. {suggestion}")

        parts.append(f"Correlation ID: {self.correlation_id}")

        return "\n".join(parts)


class SchemaError(RelGQLError):
    """Error while assembling or validating the generated schema."""

    def __init__(
        self,
        message: str,
        table_name: Optional[str] = None,
        column_name: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if table_name:
            context["table"] = table_name
        if column_name:
            context["column"] = column_name

        super().__init__(
            message=message,
            error_code="SCHEMA_ERROR",
            context=context,
            **kwargs
        )


class QueryError(RelGQLError):
    """A catalog query failed or returned nothing usable."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if query:
            # Truncate long queries
            context["query"] = query[:200] + "..." if len(query) > 200 else query
        if table_name:
            context["table"] = table_name
        if operation:
            context["operation"] = operation

        super().__init__(
            message=message,
            error_code="QUERY_ERROR",
            context=context,
            **kwargs
        )


class ConnectionError(RelGQLError):
    """Database connection error."""

    def __init__(
        self,
        message: str,
        database: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if database:
            context["database"] = database

        suggestions = kwargs.pop("suggestions", [])
        if not suggestions:
            suggestions = [
                "Check that the database exists and is reachable",
                "Verify the credentials have read access to the catalog",
                "Ensure the database is not locked by another process"
            ]

        super().__init__(
            message=message,
            error_code="CONNECTION_ERROR",
            context=context,
            suggestions=suggestions,
            **kwargs
        )


class ValidationError(RelGQLError):
    """A configuration value or argument was rejected."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        expected_type: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if field_name:
            context["field"] = field_name
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)
            context["actual_type"] = type(actual_value).__name__

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            context=context,
            **kwargs
        )


class TemplateWriteError(RelGQLError):
    """A generated artifact could not be written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        if table_name:
            context["table"] = table_name
        if operation:
            context["operation"] = operation

        suggestions = kwargs.pop("suggestions", [])
        if not suggestions:
            suggestions = [
                "Check that the output directory exists and is writable",
                "Make sure there is enough free disk space"
            ]

        super().__init__(
            message=message,
            error_code="TEMPLATE_WRITE_ERROR",
            context=context,
            suggestions=suggestions,
            **kwargs
        )


def enhance_database_error(original_error: Exception, **context) -> RelGQLError:
    """
    Transform a raw driver exception into a user-friendly relgql error.

    Args:
        original_error: The exception raised by the database client
        **context: Additional context (operation, table, sql, correlation_id)

    Returns:
        Enhanced relgql error with helpful information
    """
    if isinstance(original_error, RelGQLError):
        return original_error

    error_message = str(original_error)
    error_type = type(original_error).__name__
    table_name = context.get("table")
    operation = context.get("operation")
    sql = context.get("sql")
    correlation_id = context.get("correlation_id")

    # Connection errors
    if error_type in ["ConnectionException", "IOException", "OperationalError"]:
        return ConnectionError(
            "Database connection failed",
            context={"original_error": error_message, "operation": operation},
            correlation_id=correlation_id
        )

    # Catalog errors (table or schema not found)
    if "Catalog Error" in error_message or "does not exist" in error_message:
        match = re.search(
            r"(?:Table|relation)\s*(?:with\s*name\s*)?['\"]?([\w.]+)['\"]?",
            error_message,
            re.IGNORECASE
        )
        missing = match.group(1) if match else (table_name or "unknown")
        return QueryError(
            f"Table '{missing}' not found",
            query=sql,
            table_name=table_name or missing,
            operation=operation,
            suggestions=[
                "Check if the table name is spelled correctly",
                "Use 'relgql tables <database>' to see available tables",
                "Make sure the configured schemas include the table"
            ],
            context={"original_error": error_message},
            correlation_id=correlation_id
        )

    # Permission problems on the catalog
    lowered = error_message.lower()
    if "permission denied" in lowered or "access denied" in lowered:
        return QueryError(
            "Insufficient privileges to read the database catalog",
            query=sql,
            table_name=table_name,
            operation=operation,
            suggestions=[
                "Grant the user SELECT on information_schema and the target schemas",
                "Verify the credential reference points at the right user"
            ],
            context={"original_error": error_message},
            correlation_id=correlation_id
        )

    # Generic fallback
    return QueryError(
        f"Database error: {error_message}",
        query=sql,
        table_name=table_name,
        operation=operation,
        context={"error_type": error_type},
        correlation_id=correlation_id
    )
