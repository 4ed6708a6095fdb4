class TimetableError(Exception):
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        body = {'error': self.message}
        if self.details is not None:
            body['details'] = self.details
        return body


class ValidationError(TimetableError):
    status_code = 400


class AuthenticationRequired(TimetableError):
    status_code = 401

    def __init__(self, message='Authentication required', details=None):
        super().__init__(message, details)


class PermissionDenied(TimetableError):
    status_code = 403


class NotFoundError(TimetableError):
    status_code = 404


class ConflictError(TimetableError):
    status_code = 409


class GenerationError(TimetableError):
    """Missing prerequisite data for timetable generation."""
    status_code = 500
