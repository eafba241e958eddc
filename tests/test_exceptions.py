"""
Tests for histClean Exception Hierarchy
=======================================

Tests for error formatting, exception chaining and the hierarchy used by the
date resolution and filtering code.
"""

import pytest

from histClean.exceptions import (
    ConfigurationError,
    DataValidationError,
    DateLengthMismatchError,
    HistCleanError,
    MissingDateSourceError,
    ProcessingError,
    create_data_validation_error,
    create_processing_error,
)


class TestHistCleanError:
    """Test the base HistCleanError exception class."""

    def test_basic_creation(self):
        """Test basic exception creation with message only."""
        error = HistCleanError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details is None
        assert error.suggestions == []
        assert error.error_code is None
        assert error.context == {}

    def test_formatted_message(self):
        """Test that the formatted error message includes all components."""
        error = HistCleanError(
            message="Test error",
            details="Additional information",
            suggestions=["Try this", "Or this"],
            error_code="TEST_001",
            context={"param": "value"},
        )

        full_message = str(error)
        assert "Test error" in full_message
        assert "Details: Additional information" in full_message
        assert "Context: param=value" in full_message
        assert "- Try this" in full_message
        assert "Error Code: TEST_001" in full_message

    def test_add_suggestion_and_context(self):
        error = HistCleanError("Test error")
        error.add_suggestion("New suggestion")
        error.add_context("key", "value")

        assert error.suggestions == ["New suggestion"]
        assert error.context["key"] == "value"

    def test_empty_attributes_handled_gracefully(self):
        message = str(ProcessingError("Write failed"))
        assert "Details:" not in message
        assert "Context:" not in message
        assert "Suggestions:" not in message


class TestSpecificExceptions:
    """Test specific exception classes and their default error codes."""

    @pytest.mark.parametrize(
        "exc_type, code",
        [
            (DataValidationError, "DATA_VALIDATION"),
            (MissingDateSourceError, "MISSING_DATE_SOURCE"),
            (DateLengthMismatchError, "DATE_LENGTH_MISMATCH"),
            (ConfigurationError, "CONFIGURATION_ERROR"),
            (ProcessingError, "PROCESSING_ERROR"),
        ],
    )
    def test_error_codes(self, exc_type, code):
        error = exc_type("test")
        assert isinstance(error, HistCleanError)
        assert error.error_code == code

    def test_date_errors_are_data_validation_errors(self):
        assert issubclass(MissingDateSourceError, DataValidationError)
        assert issubclass(DateLengthMismatchError, DataValidationError)

    def test_catch_base_error(self):
        with pytest.raises(HistCleanError):
            raise DateLengthMismatchError("dates should be of same length as the number of layers")


class TestConvenienceConstructors:
    """Test convenience constructor functions."""

    def test_create_data_validation_error(self):
        error = create_data_validation_error("Invalid cube", data_info={"shape": (4, 2, 2)}, details="Expected DataArray")

        assert isinstance(error, DataValidationError)
        assert error.details == "Expected DataArray"
        assert error.context["shape"] == (4, 2, 2)

    def test_create_processing_error(self):
        error = create_processing_error("Write failed", computation_info={"output_path": "out.zarr"})

        assert isinstance(error, ProcessingError)
        assert error.context["output_path"] == "out.zarr"
