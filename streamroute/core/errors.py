class StreamRouteError(Exception):
    """Base class for all errors raised by streamroute."""


class ConfigurationError(StreamRouteError):
    pass


class MalformedRoutingTable(StreamRouteError):
    pass


class HandlerContractError(StreamRouteError):
    """The message handler is missing or cannot accept a page of messages."""


class StoreError(StreamRouteError):
    """A call to the log store failed."""


class StoreUnavailable(StoreError):
    """The log store could not be reached."""


class StoreCommandError(StoreError):
    """The log store rejected the command (unknown group, bad ID, ...)."""
