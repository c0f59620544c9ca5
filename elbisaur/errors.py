class ElbisaurError(Exception):
    """Base class of all errors raised by elbisaur."""


class FormatError(ElbisaurError):
    """Input file or record does not have the expected format."""


class ValidationError(ElbisaurError):
    """User supplied value (expression, date, option, list file) is invalid."""


class ApiError(ElbisaurError):
    """Error which was returned by the ListenBrainz API."""

    def __init__(self, message, status_code=None, payload=None):
        super(ApiError, self).__init__(message)
        self.message = message
        self.status_code = status_code or 500
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['code'] = self.status_code
        rv['error'] = self.message
        return rv

    def __str__(self):
        return f"{self.message} (HTTP {self.status_code})"


def is_error(data) -> bool:
    """ Checks whether the given JSON document is an error response of the API. """
    return isinstance(data, dict) and bool(data.get("error")) and bool(data.get("code"))
