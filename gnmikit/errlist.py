"""Collect several errors and report them as a single exception.

An ErrorList gathers errors, silently ignoring None, and produces a
MultiError from err() only when something was collected.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

__all__ = ["SEPARATOR", "ErrorList", "MultiError"]

# Joins messages of a MultiError whose list did not set its own separator.
SEPARATOR = ", "


class MultiError(Exception):
    """An exception carrying a list of other errors."""

    def __init__(self, errors: Sequence[BaseException], separator: str = "") -> None:
        super().__init__()
        self._errors = list(errors)
        self.separator = separator

    def errors(self) -> list[BaseException]:
        """Return the errors held by this exception."""
        return list(self._errors)

    def __str__(self) -> str:
        sep = self.separator or SEPARATOR
        return sep.join(str(err) for err in self._errors)

    def __repr__(self) -> str:
        return f"MultiError({self._errors!r})"


@dataclass
class ErrorList:
    """A working list of errors; it is not itself an exception.

    ``separator`` overrides the module-wide SEPARATOR when non-empty.
    """

    separator: str = ""
    _errors: list[BaseException] = field(default_factory=list, init=False, repr=False)

    def add(self, *args: object) -> bool:
        """Add every non-None error and return whether anything was added.

        Objects with an ``errors()`` method contribute the errors they
        return; lists and tuples of errors are added element by element.
        """
        added = False
        for err in args:
            if err is None:
                continue
            nested = getattr(err, "errors", None)
            if callable(nested):
                items = list(nested() or [])
                if items:
                    self._errors.extend(items)
                    added = True
                continue
            if isinstance(err, (list, tuple)):
                sub_added = False
                for item in err:
                    if isinstance(item, BaseException) or isinstance(item, (list, tuple)):
                        sub_added = self.add(item) or sub_added
                added = added or sub_added
                continue
            if not isinstance(err, BaseException):
                raise TypeError(f"cannot add {type(err).__name__} to an error list")
            self._errors.append(err)
            added = True
        return added

    def err(self) -> MultiError | None:
        """Return the collected errors as a MultiError, or None if there are none."""
        if not self._errors:
            return None
        return MultiError(self._errors, self.separator)

    def __len__(self) -> int:
        return len(self._errors)