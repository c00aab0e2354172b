from geoaudit.middleware.backpressure import BackpressureMiddleware
from geoaudit.middleware.cors import EmptyPreflightCORSMiddleware
from geoaudit.middleware.request_log import RequestLoggingMiddleware

__all__ = ["BackpressureMiddleware", "EmptyPreflightCORSMiddleware", "RequestLoggingMiddleware"]
