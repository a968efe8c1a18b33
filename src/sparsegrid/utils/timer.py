import functools
import logging
from time import perf_counter


class Timer:
    """Measure elapsed wall time and report it through a logger.

    Can be used as a context manager or as a decorator:

        >>> timer = Timer(logger=logging.getLogger("sparsegrid"))
        >>> with timer("Loading grid"):
        ...     pass
        >>> @timer("Writing grid")
        ... def write():
        ...     pass
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        level: int = logging.DEBUG,
        message: str | None = None,
    ):
        self.logger = logger or logging.getLogger("sparsegrid")
        self.level = level
        self.message = message
        self.elapsed = None
        self._start = None

    def __call__(self, message=None, level: int | None = None):
        # Bare decorator usage: @timer
        if callable(message):
            return self._decorate(message)
        return Timer(
            logger=self.logger,
            level=self.level if level is None else level,
            message=message or self.message,
        )

    def __enter__(self) -> "Timer":
        self._start = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed = perf_counter() - self._start
        message = self.message or "Elapsed time"
        self.logger.log(self.level, f"{message} took {self.elapsed:.3f} seconds.")

    def _decorate(self, func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with Timer(self.logger, self.level, self.message or func.__qualname__):
                return func(*args, **kwargs)

        return wrapper
