"""Rate limiting adapters.

The API layer depends on ``AbstractRateLimiter``; the fixed-window limiter
keeps all of its state in a shared ``CounterStore`` so every service instance
sees the same counts.
"""
