"""Runtime contract for initgen-generated initialization mixins.

Application code imports the marker and the capability contract from here:

    from initialization import initializable

    @initializable
    class Cache(Cache_Initializable):
        store: Store

        async def on_initialize(self) -> None:
            ...

initgen reads the decorator statically; at runtime it only tags the class.
"""

import abc

MARKER: str = "initialization.initializable"
"""Qualified name initgen matches decorators against by default."""


def initializable(cls: type) -> type:
    """Mark a class as participating in the initialization protocol.

    The tag is inherited through normal attribute lookup, so subclasses of a
    marked class are initializable too. Marking a class twice is a no-op.

    Raises:
        TypeError: If applied to anything other than a class.
    """
    if not isinstance(cls, type):
        raise TypeError(
            f"@initializable applies to classes only, got {type(cls).__name__}"
        )
    cls.__initializable__ = True
    return cls


def is_initializable(obj: object) -> bool:
    cls = obj if isinstance(obj, type) else type(obj)
    return bool(getattr(cls, "__initializable__", False))


class Initializable(abc.ABC):
    """Capability contract implemented by every introducer mixin."""

    @abc.abstractmethod
    async def initialize(self) -> None:
        """Initialize dependencies, then the instance itself, exactly once."""
