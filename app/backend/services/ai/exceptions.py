"""
Exceptions raised by the document analysis AI modules.
"""


class AIServiceError(Exception):
    """Raised when a document could not be analysed by the model."""

    pass


class AIResponseError(AIServiceError):
    """Raised when the model answered with something other than a JSON object."""

    pass
