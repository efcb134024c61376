"""
This module defines custom exceptions for the waste calendar.
"""


class DownloadError(Exception):
    """Raised when the iCal feed cannot be fetched or is not a calendar."""

    pass


class ParsingError(Exception):
    """Custom exception for errors during iCal file parsing."""

    pass


class MissingDateError(ParsingError):
    """An event in the feed has no DTSTART."""

    def __init__(self, uid: str = ""):
        super().__init__(f"Missing date in event {uid}".rstrip())


class InvalidDateError(ParsingError):
    """An event in the feed has a DTSTART that is not a calendar date."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid date format: {value}")


class MissingSummaryError(ParsingError):
    """An event in the feed has no category text."""

    def __init__(self, uid: str = ""):
        super().__init__(f"Missing summary in event {uid}".rstrip())


class StoreError(Exception):
    """A database operation failed and its transaction was rolled back."""

    pass


class DeliveryError(Exception):
    """Base class for failures of the outbound message channel."""

    def __init__(self, chat_id: int, message: str):
        self.chat_id = chat_id
        super().__init__(message)


class PermanentDeliveryError(DeliveryError):
    """The recipient blocked the bot or was deactivated."""

    pass


class TransientDeliveryError(DeliveryError):
    """Any other delivery failure; the recipient stays eligible."""

    pass
