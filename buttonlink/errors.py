class ButtonLinkError(RuntimeError):
    """Base class for all errors raised by the button channel."""
    pass


class EnumerationError(ButtonLinkError):
    """Raised when the OS serial-port query fails."""
    pass


class OpenError(ButtonLinkError):
    """Raised when a serial handle could not be opened."""
    def __init__(self, message, port=None):
        super().__init__(message)
        self.port = port


class TransportError(ButtonLinkError):
    """Raised (or reported) on an I/O error in the middle of a stream."""
    def __init__(self, message, port=None):
        super().__init__(message)
        self.port = port


class ValidationError(ButtonLinkError):
    """Raised when an incoming line is not a valid button label."""
    def __init__(self, message, line):
        super().__init__(message)
        self.line = line


class ExhaustedError(ButtonLinkError):
    """Recorded when automatic reconnection gave up after max attempts."""
    def __init__(self, message, attempts):
        super().__init__(message)
        self.attempts = attempts
