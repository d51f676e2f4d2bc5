"""Set diff engine for attachable resources.

Compares the resources currently attached to a parent with the ones
that should be, and returns what to detach and what to attach. Identity
is the resource ID only; names and other fields are ignored.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar


class Identified(Protocol):
    """Anything with a stable provider ID."""

    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=Identified)


@dataclass
class DiffResult(Generic[T]):
    """Outcome of :func:`diff`.

    Attributes:
        to_detach: Resources in ``old`` but not in ``new``, in ``old`` order.
        to_attach: Resources in ``new`` but not in ``old``, in ``new`` order.
    """

    to_detach: list[T] = field(default_factory=list)
    to_attach: list[T] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        """True when there is nothing to do."""
        return not self.to_detach and not self.to_attach


def diff(old: Sequence[T], new: Sequence[T]) -> DiffResult[T]:
    """Compute the attach/detach operations turning ``old`` into ``new``.

    Each element of ``old`` is matched against the first not yet matched
    element of ``new`` with the same ID. Matched pairs are already in
    place and appear in neither output list.

    Args:
        old: Resources currently attached.
        new: Resources that should be attached.

    Returns:
        DiffResult whose lists are always present, possibly empty.

    Example:
        >>> result = diff([Disk(id="1"), Disk(id="2")], [Disk(id="2"), Disk(id="3")])
        >>> [d.id for d in result.to_detach], [d.id for d in result.to_attach]
        (['1'], ['3'])
    """
    remaining = list(new)
    to_detach: list[T] = []

    for old_item in old:
        for i, new_item in enumerate(remaining):
            if new_item.id == old_item.id:
                del remaining[i]
                break
        else:
            to_detach.append(old_item)

    return DiffResult(to_detach=to_detach, to_attach=remaining)
