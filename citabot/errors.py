"""Exception hierarchy shared by the engine and its collaborator adapters."""


class CitabotError(Exception):
    """Base class for every error raised inside citabot."""


class CollaboratorError(CitabotError):
    """An external collaborator is unavailable, timed out, or misbehaved."""


class NLUError(CollaboratorError):
    """The intent/slot extraction service failed or returned malformed output."""


class TextGenerationError(CollaboratorError):
    """The text-generation service failed or returned nothing usable."""


class GridStoreError(CollaboratorError):
    """Reading or writing the spreadsheet grid failed."""


class CalendarStoreError(CollaboratorError):
    """Creating a calendar event failed."""


class DateParseError(CitabotError, ValueError):
    """A date phrase could not be resolved to a weekday and exact date."""


class TimeParseError(CitabotError, ValueError):
    """A time phrase could not be resolved to a bookable time of day."""


class InvalidTransitionError(CitabotError):
    """Raised when a transition is not valid from the current state."""


class TransportError(CollaboratorError):
    """The chat transport could not deliver an outbound message."""
