"""
Error taxonomy shared by the loop, the engines and the model loader.
"""


class LiveClassifierError(Exception):
    """Base class for every error raised by this application."""


class ModelLoadFailure(LiveClassifierError):
    """Model or metadata could not be retrieved, parsed or loaded."""


class DeviceUnavailable(LiveClassifierError):
    """Camera cannot be opened, or stopped producing frames."""


class PermissionDenied(LiveClassifierError):
    """The operating system refused access to the camera."""


class InvalidFrame(LiveClassifierError):
    """Frame cannot be turned into a tensor (e.g. zero area)."""


class InferenceFailure(LiveClassifierError):
    """Malformed tensor or backend error while classifying."""


class InvalidTensor(InferenceFailure):
    """Tensor was used after it had been released."""
