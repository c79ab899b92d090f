from fastapi import status

# --- Custom Exception Classes ---
class WatchSyncError(Exception):
    """Base class for rejected watch syncs. Carries the message shown to the caller."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

class Unauthenticated(WatchSyncError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "User not authenticated"

class InvalidPayload(WatchSyncError):
    default_message = "No health data provided"

class MissingApiKey(WatchSyncError):
    default_message = "API key required"

class UnknownApiKey(WatchSyncError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid API key"

class InternalFailure(WatchSyncError):
    """Unexpected fault while storing. The message never carries internal detail."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"
