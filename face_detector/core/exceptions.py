"""Custom exceptions for the application."""

class ApplicationError(Exception):
    """Base application error."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class UnavailableError(ApplicationError):
    """A startup resource (camera or model) could not be acquired."""
    pass

class CameraUnavailableError(UnavailableError):
    """Camera device could not be opened."""
    pass

class ModelLoadError(UnavailableError):
    """Cascade model missing or malformed."""
    pass

class CaptureError(ApplicationError):
    """Frame capture failed mid-run.

    A transient error means a single frame was dropped and the next read may
    succeed. A terminal error means the device is gone for this run.
    """

    def __init__(self, message: str, terminal: bool = False):
        super().__init__(message)
        self.terminal = terminal

class DetectionError(ApplicationError):
    """Classifier call failed for a single frame."""
    pass

class PipelineError(ApplicationError):
    """Pipeline lifecycle misuse."""
    pass
