from arena.middlewares.db_middleware import DatabaseMiddleware
from arena.middlewares.auth_middleware import AdminMiddleware, IsAdmin
from arena.middlewares.rate_limit_middleware import RateLimitMiddleware

__all__ = ["DatabaseMiddleware", "AdminMiddleware", "IsAdmin", "RateLimitMiddleware"]
