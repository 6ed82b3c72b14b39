class ReindexError(Exception):
    """Base class for all errors raised by esreindex."""


class InvalidLocation(ReindexError, ValueError):
    """An "[url/]index" string could not be resolved."""


class InvalidOptions(ReindexError, ValueError):
    """Copy options failed validation."""


class RequestRejected(ReindexError):
    """
    The remote side answered "bad request"; retrying the same call cannot help.
    :param method: str, HTTP method
    :param path: str, request path
    :param status: int, HTTP status returned
    :param info: response body (dict or str)
    """

    def __init__(self, method, path, status, info=None):
        self.method = method
        self.path = path
        self.status = status
        self.info = info
        super(RequestRejected, self).__init__('%s %s rejected with status %s' % (method, path, status))


class RetriesExhausted(ReindexError):
    """A retryable call kept failing until the retry policy gave up."""

    def __init__(self, method, path, attempts, last_error=None):
        self.method = method
        self.path = path
        self.attempts = attempts
        self.last_error = last_error
        super(RetriesExhausted, self).__init__('giving up on %s %s after %d attempts: %s' %
                                               (method, path, attempts, last_error))
