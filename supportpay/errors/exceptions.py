class AppError(Exception):
    status_code = 500
    error = "Application error"

    def __init__(self, message, status_code=None):
        super().__init__(message)
        if status_code:
            self.status_code = status_code
        self.message = message

    def to_dict(self):
        return {
            'success': False,
            'error': self.error,
            'message': self.message,
        }


class ValidationError(AppError):
    status_code = 400
    error = "Validation error"

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message, status_code)
        self.details = details

    def to_dict(self):
        data = super().to_dict()
        if self.details:
            data['details'] = self.details
        return data


class AuthError(AppError):
    status_code = 500
    error = "Gateway authentication failed"


class GatewayError(AppError):
    status_code = 500
    error = "Gateway error"

    def __init__(self, message, status_code=None, gateway_response=None):
        super().__init__(message, status_code)
        self.gateway_response = gateway_response or {}

    def to_dict(self):
        data = super().to_dict()
        # Daraja error bodies: {"requestId", "errorCode", "errorMessage"}
        for key in ('errorCode', 'errorMessage'):
            if key in self.gateway_response:
                data[key] = self.gateway_response[key]
        return data


class DuplicateRequest(AppError):
    status_code = 409
    error = "Duplicate request"


class CallbackParseError(AppError):
    """Malformed gateway callback. Logged and acknowledged, never rendered."""
    status_code = 200
    error = "Malformed callback"


class ConfigurationError(AppError):
    error = "Server misconfigured"
