"""Names for anonymous string literals."""

DEFAULT_STRING_PREFIX = "String_"


class StringNamer:
    """Hands out String_0, String_1, ... for one engine run."""

    def __init__(self, prefix: str = DEFAULT_STRING_PREFIX) -> None:
        self.prefix = prefix
        self._counter = 0

    def next(self) -> str:
        name = f"{self.prefix}{self._counter}"
        self._counter += 1
        return name

    @property
    def issued(self) -> int:
        """Number of names handed out so far."""
        return self._counter
