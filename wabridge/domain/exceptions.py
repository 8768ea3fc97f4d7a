"""Errors raised by the group-management services.

The cache never raises; everything here comes from the session glue and is
turned into an HTTP status or a bot reply at the edges.
"""


class WaBridgeError(Exception):
    """Base class for wabridge errors. ``status_code`` is used by the HTTP layer."""
    status_code = 500


class SessionNotConnectedError(WaBridgeError):
    def __init__(self, message: str = "WhatsApp not connected"):
        super().__init__(message)


class InvalidRequestError(WaBridgeError):
    status_code = 400


class InvalidSettingError(InvalidRequestError):
    def __init__(self, setting: str):
        self.setting = setting
        super().__init__("Invalid setting")


class NoAdminGroupsError(InvalidRequestError):
    def __init__(self, message: str = "No valid admin groups found"):
        super().__init__(message)


class GroupNotFoundError(WaBridgeError):
    status_code = 404

    def __init__(self, group_number: int):
        self.group_number = group_number
        super().__init__("Group not found")


class NotGroupAdminError(WaBridgeError):
    status_code = 403

    def __init__(self, group_number: int):
        self.group_number = group_number
        super().__init__("Not admin in this group")


class ImageDownloadError(WaBridgeError):
    status_code = 502

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Failed to download image: {reason}")
