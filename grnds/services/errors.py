class GrndsError(Exception):
    """Base for every error a request can end with. `status` is the HTTP code it maps to."""
    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- 4xx: the caller can fix it or it is a legitimate business outcome ---

class ValidationError(GrndsError):
    status = 400

class AlreadyPlacedError(GrndsError):
    status = 400

class QueueSizeError(GrndsError):
    status = 400

class NoRankedHistoryError(GrndsError):
    status = 404

class NotFoundError(GrndsError):
    status = 404

# --- 5xx ---

class PersistenceError(GrndsError):
    status = 500
