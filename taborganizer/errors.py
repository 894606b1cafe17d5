"""Exception types for the tab organizer."""


class TabOrganizerError(Exception):
    """Base class for all tab organizer errors."""


class ClassificationError(TabOrganizerError):
    """The remote classifier could not produce a category."""


class ClassifierUnavailable(ClassificationError):
    """No credential is configured for the remote classifier."""


class RateLimited(ClassificationError):
    """The rate limiter denied the remote call."""


class RemoteError(ClassificationError):
    """Transport or protocol failure while calling the remote classifier."""


class InvalidResponse(ClassificationError):
    """The remote answer could not be mapped to a known category."""


class PersistenceError(TabOrganizerError):
    """Reading or writing the local snapshot store or the remote store failed."""


class ExternalSurfaceError(TabOrganizerError):
    """A call to the native tab-grouping surface failed."""
