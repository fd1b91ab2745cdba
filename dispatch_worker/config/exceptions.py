"""Custom exceptions for configuration management."""

from typing import List, Optional


class ConfigurationError(Exception):
    """
    Raised when the worker cannot start because its configuration is invalid.

    Environment variables and the YAML file are validated in full before this
    is raised, so ``errors`` holds every problem found and the operator can fix
    them in one pass. ``main`` prints the formatted message and exits with
    status 1.

    Attributes:
        message: One-line summary, e.g. "Environment variable validation failed"
        errors: Individual problems, one per variable or config key
        suggestions: Hints for fixing them, such as which example file to copy
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Args:
            message: One-line summary of what failed to load
            errors: Specific problems found during validation
            suggestions: Operator-facing hints on how to fix them
        """
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Render the summary, numbered errors and bulleted suggestions.

        Returns:
            Multi-line message suitable for printing to stderr
        """
        lines = [self.message]

        if self.errors:
            lines.append("\nValidation Errors:")
            lines.extend(f"  {number}. {error}" for number, error in enumerate(self.errors, 1))

        if self.suggestions:
            lines.append("\nSuggestions:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)

        return "\n".join(lines)
