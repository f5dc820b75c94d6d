"""
Exception types raised by gov-ai services.
"""


class GovAIError(Exception):
    """Base class for gov-ai errors."""


class ConfigurationError(GovAIError):
    """A required setting (API key, principles file) is missing."""


class FetchError(GovAIError):
    """A proposal source could not be fetched."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GraphQLError(FetchError):
    """A GraphQL endpoint answered with an `errors` array."""


class ProposalNotFoundError(FetchError):
    """The source answered but has no such proposal, governor or organization."""


class LLMError(GovAIError):
    """The LLM provider failed or returned no content."""

    def __init__(self, message: str, status_code: int | None = None, raw: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.raw = raw


class InvalidModelOutputError(LLMError):
    """The model reply could not be parsed as JSON."""


class ModelRefusalError(InvalidModelOutputError):
    """The model declined to produce the report."""


class InvalidReportNameError(GovAIError):
    """A report filename tried to leave the reports directory."""
