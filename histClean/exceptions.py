"""
histClean Exception Hierarchy
=============================

This module provides a structured exception hierarchy for the histClean package.
"""

from typing import Any, Dict, List, Optional


class HistCleanError(Exception):
    """
    Base exception class for all histClean-specific errors.

    Parameters
    ----------
    message : str
        Primary error message describing what went wrong
    details : str, optional
        Additional technical details about the error
    suggestions : list of str, optional
        Actionable suggestions for resolving the error
    error_code : str, optional
        Structured error code for programmatic handling
    context : dict, optional
        Additional context information (e.g., parameter values, layer counts)
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialise the Error."""
        self.message = message
        self.details = details
        self.suggestions = suggestions or []
        self.error_code = error_code
        self.context = context or {}

        full_message = self._format_error_message()
        super().__init__(full_message)

    def _format_error_message(self) -> str:
        """Format a comprehensive error message with all available information."""
        parts = [self.message]

        if self.details:
            parts.append(f"Details: {self.details}")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")

        if self.suggestions:
            suggestions_str = "\n".join(f"  - {s}" for s in self.suggestions)
            parts.append(f"Suggestions:\n{suggestions_str}")

        if self.error_code:
            parts.append(f"Error Code: {self.error_code}")

        return "\n".join(parts)

    def add_suggestion(self, suggestion: str) -> None:
        """Add an additional suggestion for resolving the error."""
        self.suggestions.append(suggestion)

    def add_context(self, key: str, value: Any) -> None:
        """Add additional context information."""
        self.context[key] = value


class DataValidationError(HistCleanError):
    """
    Raise exception for input data validation issues.

    Common scenarios:

    * Input is not an xarray DataArray
    * Missing time dimension
    * Unparsable scene identifiers
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        error_code: str = "DATA_VALIDATION",
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialise the Error."""
        super().__init__(message, details, suggestions, error_code, context)


class MissingDateSourceError(DataValidationError):
    """
    Raise exception when no acquisition dates can be resolved for the layers.

    None of the date sources (explicit ``dates``, a datetime time coordinate,
    or parsable Landsat scene identifiers) yielded a complete date vector.
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        error_code: str = "MISSING_DATE_SOURCE",
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialise the Error."""
        super().__init__(message, details, suggestions, error_code, context)


class DateLengthMismatchError(DataValidationError):
    """
    Raise exception when a supplied date vector does not match the layer count.

    Examples
    --------
    >>> raise DateLengthMismatchError(
    ...     "dates should be of same length as the number of layers",
    ...     context={"n_dates": 3, "n_layers": 4}
    ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        error_code: str = "DATE_LENGTH_MISMATCH",
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialise the Error."""
        super().__init__(message, details, suggestions, error_code, context)


class ConfigurationError(HistCleanError):
    """
    Raise exception for parameter and setup issues.

    Common scenarios:

    * Threshold that is neither numeric nor ``"IQR"``
    * Malformed monitoring period (year, day-of-year)
    * Unsupported output destination

    Examples
    --------
    >>> raise ConfigurationError(
    ...     "Invalid monitoring period",
    ...     details="day of year must be between 1 and 366",
    ...     suggestions=["Use monitoring_period=(2005, 1) for the start of 2005"],
    ...     context={"provided_value": (2005, 400)}
    ... )
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        error_code: str = "CONFIGURATION_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialise the Error."""
        super().__init__(message, details, suggestions, error_code, context)


class ProcessingError(HistCleanError):
    """
    Raise exception for computational issues.

    Common scenarios:

    * Failure while writing the filtered cube to disk
    * Dask computation errors
    """

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        error_code: str = "PROCESSING_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialise the Error."""
        super().__init__(message, details, suggestions, error_code, context)


# Convenience functions for creating common exceptions
def create_data_validation_error(
    message: str,
    data_info: Optional[Dict[str, Any]] = None,
    **kwargs,
) -> DataValidationError:
    """
    Create a DataValidationError with data context.

    Parameters
    ----------
    message : str
        Error message
    data_info : dict, optional
        Dictionary with data information (shape, dims, dtype, etc.)
    **kwargs
        Additional arguments passed to DataValidationError

    Returns
    -------
    DataValidationError
        Configured exception with data context
    """
    context = kwargs.get("context", {})
    if data_info:
        context.update(data_info)
    kwargs["context"] = context
    return DataValidationError(message, **kwargs)


def create_processing_error(
    message: str,
    computation_info: Optional[Dict[str, Any]] = None,
    **kwargs,
) -> ProcessingError:
    """Create a ProcessingError with computation context."""
    context = kwargs.get("context", {})
    if computation_info:
        context.update(computation_info)
    kwargs["context"] = context
    return ProcessingError(message, **kwargs)


__all__ = [
    "HistCleanError",
    "DataValidationError",
    "MissingDateSourceError",
    "DateLengthMismatchError",
    "ConfigurationError",
    "ProcessingError",
    "create_data_validation_error",
    "create_processing_error",
]
