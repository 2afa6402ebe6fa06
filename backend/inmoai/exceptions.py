"""Exception hierarchy shared by the analysis services."""


class InmoAIError(Exception):
    """Base class for errors raised by InmoAI services."""


class PrimaryAgentError(InmoAIError):
    """The external orchestration webhook could not be reached."""


class FallbackAgentError(InmoAIError):
    """The direct AI provider call failed or returned an unusable report."""


class PersistenceError(InmoAIError):
    """A storage backend rejected a read or write."""
