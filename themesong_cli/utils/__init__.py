"""
Shared helpers: paths, formatting and the provider circuit breaker.
"""
