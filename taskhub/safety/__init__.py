from .throttler import RateLimiter

__all__ = ["RateLimiter"]
