"""Exception taxonomy shared by the scan pipeline and the trade monitor."""


class FuturesScanError(Exception):
    """Base class for all FuturesScan errors."""


class DataInsufficient(FuturesScanError):
    """The candle window is too short for an indicator or for scoring."""


class CalculationError(FuturesScanError):
    """A numeric edge case with no defined fallback (e.g. zero volume)."""


class ExternalFetchError(FuturesScanError):
    """A data collaborator timed out or returned an unusable response."""


class NotificationError(ExternalFetchError):
    """The notification channel rejected or failed to deliver an event."""


class ValidationRejected(FuturesScanError):
    """Risk checks failed; the signal is dropped without a trade."""


class RepeatedFailure(FuturesScanError):
    """Consecutive scan cycles failed past the configured threshold."""
