from middleware.request_id import RequestIDMiddleware, get_request_id, request_id_var
from middleware.rate_limiter import limiter

__all__ = ["RequestIDMiddleware", "get_request_id", "request_id_var", "limiter"]
