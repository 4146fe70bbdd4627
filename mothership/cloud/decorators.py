"""Decorators for the mock gateway."""
import functools
import logging

log = logging.getLogger(__name__)

# Gateway operations that already announced mock mode
_announced = set()


def mock_data(func):
    """Log that a gateway operation is served by mock mode.

    The first call of each operation logs at warning level so the missing
    credentials are visible at startup; later calls only log at debug level.
    """
    @functools.wraps(func)
    def wrapper(self, thing_id, *args, **kwargs):
        if func.__name__ not in _announced:
            _announced.add(func.__name__)
            log.warning(f"Mock mode: {func.__name__} for thing {thing_id} is served without the cloud "
                        "(set ARDUINO_CLIENT_ID/ARDUINO_CLIENT_SECRET to go live)")
        else:
            log.debug(f"Mock mode: {func.__name__} for thing {thing_id}")
        return func(self, thing_id, *args, **kwargs)

    return wrapper
