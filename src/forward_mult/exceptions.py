"""
Custom exception hierarchy for the forward multiplicity pipeline.

Per-event failures never leave the event boundary: collaborators either
return False or raise a ProcessingError, and the sequencer turns both into a
rejected event. The remaining classes cover configuration, input files,
correction maps and output.
"""

from typing import Optional, Dict, Any


# ============================================================================
# Base Exception
# ============================================================================

class ForwardMultError(Exception):
    """
    Base exception for all forward multiplicity errors.

    All custom exceptions inherit from this to allow catching every
    pipeline-specific error with a single except clause.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Args:
            message: Human-readable error description
            details: Optional dict with additional context (file paths, values, etc.)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} [{details_str}]"
        return self.message


# ============================================================================
# Configuration Errors
# ============================================================================

class ConfigurationError(ForwardMultError):
    """Base class for configuration-related errors"""
    pass


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when config file doesn't exist"""

    def __init__(self, config_path: str):
        super().__init__(
            f"Configuration file not found: {config_path}",
            details={"config_path": config_path}
        )


class ConfigValidationError(ConfigurationError):
    """Raised when config contains invalid values"""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration value for '{field}': {reason}",
            details={"field": field, "value": value, "reason": reason}
        )


# ============================================================================
# Data Loading Errors
# ============================================================================

class DataLoadError(ForwardMultError):
    """Base class for event input errors"""
    pass


class EventFileNotFoundError(DataLoadError):
    """Raised when an event file doesn't exist"""

    def __init__(self, file_path: str):
        super().__init__(
            f"Event file not found: {file_path}",
            details={"file_path": file_path}
        )


class InvalidEventFileError(DataLoadError):
    """Raised when an event archive is missing arrays or has bad shapes"""

    def __init__(self, file_path: str, reason: str):
        super().__init__(
            f"Invalid event file {file_path}: {reason}",
            details={"file_path": file_path, "reason": reason}
        )


# ============================================================================
# Processing Errors
# ============================================================================

class ProcessingError(ForwardMultError):
    """Base class for per-event processing errors"""
    pass


class StageError(ProcessingError):
    """Raised by a collaborator that cannot process the current event"""

    def __init__(self, stage_name: str, reason: str):
        super().__init__(
            f"Stage '{stage_name}' failed: {reason}",
            details={"stage_name": stage_name, "reason": reason}
        )
        self.stage_name = stage_name


class CorrectionMapError(ProcessingError):
    """Raised when correction maps are missing or inconsistent"""

    def __init__(self, reason: str, vertex_bin: Optional[int] = None):
        details = {"reason": reason}
        if vertex_bin is not None:
            details["vertex_bin"] = vertex_bin
        super().__init__(f"Correction map error: {reason}", details=details)


# ============================================================================
# Export Errors
# ============================================================================

class ExportError(ForwardMultError):
    """Base class for export/output errors"""
    pass


class OutputDirectoryError(ExportError):
    """Raised when output directory creation/access fails"""

    def __init__(self, directory: str, reason: str):
        super().__init__(
            f"Output directory error: {reason}",
            details={"directory": directory, "reason": reason}
        )


# ============================================================================
# Pipeline Errors
# ============================================================================

class PipelineError(ForwardMultError):
    """Base class for pipeline lifecycle errors"""
    pass


class PipelineStateError(PipelineError):
    """Raised when a hook is called out of order"""

    def __init__(self, hook: str, reason: str):
        super().__init__(
            f"Invalid pipeline state in '{hook}': {reason}",
            details={"hook": hook, "reason": reason}
        )


# ============================================================================
# Utility Functions
# ============================================================================

def format_error_chain(error: Exception) -> str:
    """
    Format exception chain for logging.

    Args:
        error: Exception to format

    Returns:
        Multi-line string with full error chain
    """
    lines = [f"Error: {type(error).__name__}: {str(error)}"]

    if isinstance(error, ForwardMultError) and error.details:
        lines.append("Details:")
        for key, value in error.details.items():
            lines.append(f"  {key}: {value}")

    if error.__cause__ is not None:
        lines.append("\nCaused by:")
        lines.append(format_error_chain(error.__cause__))

    return "\n".join(lines)
