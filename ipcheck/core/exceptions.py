"""
Custom exceptions for IPCheck
"""

class IPCheckError(Exception):
    """Base exception for all IPCheck errors"""
    pass

class ConfigurationError(IPCheckError):
    """Error in configuration settings"""
    pass

class ValidationError(IPCheckError):
    """Error validating input data"""
    pass

class NetworkError(IPCheckError):
    """Network connectivity issues"""
    def __init__(self, message, service=None):
        self.service = service
        super().__init__(message)

class APIError(IPCheckError):
    """Errors from external APIs"""
    def __init__(self, service, message, status_code=None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error: {message}")

class RateLimitError(APIError):
    """Rate limit exceeded for an API"""
    def __init__(self, service, retry_after=None):
        self.retry_after = retry_after
        message = f"Rate limit exceeded for {service}"
        if retry_after:
            message += f", retry after {retry_after} seconds"
        super().__init__(service, message, 429)

class DataParsingError(IPCheckError):
    """Error parsing data from external sources"""
    def __init__(self, message, source=None):
        self.source = source
        super().__init__(message)

class ProviderError(IPCheckError):
    """A provider answered, but reported a failure in its response body"""
    def __init__(self, service, message):
        self.service = service
        super().__init__(f"{service}: {message}")

class CacheError(IPCheckError):
    """Cache or lock backend unavailable"""
    pass

class LookupError(IPCheckError):
    """Error during lookup operations"""
    def __init__(self, message, errors=None):
        self.errors = errors or []
        super().__init__(message)

class LookupTimeoutError(LookupError):
    """The lookup pipeline exceeded its overall deadline"""
    pass

class LockTimeoutError(LookupError):
    """Gave up waiting for another caller to finish the same lookup"""
    pass
