"""Counter store adapters.

The limiter depends only on the ``CounterStore`` contract; Redis is the
production backend behind it.
"""
