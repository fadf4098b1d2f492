# src/strata/contracts/storage.py
"""Storage contract implemented by every backend and combinator.

This protocol is the only thing combinators know about each other, which
is what lets them compose in any order:

    get(ref) -> payload       raises NotFoundError if absent
    put(ref, payload)         store, replacing any previous value
    delete(ref)               remove
    merge(ref, payload)       backend-defined accumulation (e.g. append)

plus the optional naming facility:

    find(name) -> ref         resolve a name to a reference

BaseStorage gives every method a NotSupportedError default so components
only override what is meaningful for them.
"""

from typing import Any, Protocol, runtime_checkable

from strata.contracts.errors import NotSupportedError
from strata.contracts.reference import Reference


@runtime_checkable
class Storage(Protocol):
    """Protocol for storage backends and combinators."""

    def get(self, reference: Reference) -> Any:
        """Retrieve the payload stored at reference.

        Raises:
            NotFoundError: If nothing is stored at reference
        """
        ...

    def put(self, reference: Reference, payload: Any) -> None:
        """Store payload at reference, replacing any previous value."""
        ...

    def delete(self, reference: Reference) -> None:
        """Remove whatever is stored at reference."""
        ...

    def merge(self, reference: Reference, payload: Any) -> None:
        """Accumulate payload into reference (semantics are backend-defined)."""
        ...


@runtime_checkable
class Finder(Protocol):
    """Optional naming facility: resolve a name to a reference."""

    def find(self, name: str) -> Reference:
        """Resolve name.

        Raises:
            NotFoundError: If name can't be resolved
            NotSupportedError: If the component has no naming facility
        """
        ...


class BaseStorage:
    """Base class for storage components.

    Every operation defaults to NotSupportedError.
    """

    def get(self, reference: Reference) -> Any:
        raise unsupported(self, "get")

    def put(self, reference: Reference, payload: Any) -> None:
        raise unsupported(self, "put")

    def delete(self, reference: Reference) -> None:
        raise unsupported(self, "delete")

    def merge(self, reference: Reference, payload: Any) -> None:
        raise unsupported(self, "merge")

    def find(self, name: str) -> Reference:
        raise unsupported(self, "find")


def unsupported(component: object, operation: str, detail: str | None = None) -> NotSupportedError:
    """Build the NotSupportedError for component.operation."""
    return NotSupportedError(type(component).__name__, operation, detail)


def find_in(storage: object, name: str) -> Reference:
    """Call find on storage if it has a naming facility.

    Raises:
        NotSupportedError: If storage does not implement Finder
    """
    if not isinstance(storage, Finder):
        raise unsupported(storage, "find")
    return storage.find(name)
