"""Registry of syntax backends keyed by ``(format, syntax)``.

The registry is a plain immutable value.  It is built once at start-up with
:func:`default_registry` (or extended through :meth:`BackendRegistry.register`,
which returns a new registry) and handed to each printing session.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from .att import ElfAttSyntax
from .base import SyntaxBackend
from .intel import ElfIntelSyntax

Target = Tuple[str, str]
BackendFactory = Callable[[], SyntaxBackend]

DEFAULT_SYNTAXES: Mapping[str, str] = MappingProxyType({"elf": "intel"})


class BackendRegistry:
    def __init__(
        self,
        factories: Optional[Mapping[Target, BackendFactory]] = None,
        *,
        default_syntaxes: Mapping[str, str] = DEFAULT_SYNTAXES,
    ) -> None:
        self._factories: Mapping[Target, BackendFactory] = MappingProxyType(dict(factories or {}))
        self._default_syntaxes: Mapping[str, str] = MappingProxyType(dict(default_syntaxes))

    def register(
        self,
        formats: Iterable[str],
        syntaxes: Iterable[str],
        factory: BackendFactory,
    ) -> "BackendRegistry":
        """Return a new registry with ``factory`` added for every pair."""

        formats = tuple(formats)
        syntaxes = tuple(syntaxes)
        if not formats:
            raise ValueError("no formats to register")
        if not syntaxes:
            raise ValueError("no syntaxes to register")
        factories: Dict[Target, BackendFactory] = dict(self._factories)
        for fmt in formats:
            for syntax in syntaxes:
                factories[(fmt, syntax)] = factory
        return BackendRegistry(factories, default_syntaxes=self._default_syntaxes)

    def targets(self) -> frozenset:
        return frozenset(self._factories)

    def __contains__(self, target: object) -> bool:
        return target in self._factories

    def default_syntax(self, fmt: str) -> Optional[str]:
        return self._default_syntaxes.get(fmt)

    def create(self, fmt: str, syntax: str) -> SyntaxBackend:
        factory = self._factories.get((fmt, syntax))
        if factory is None:
            available = ", ".join(f"{f}/{s}" for f, s in sorted(self._factories))
            raise KeyError(f"no backend registered for {fmt}/{syntax} (available: {available or 'none'})")
        return factory()


def default_registry() -> BackendRegistry:
    return (
        BackendRegistry()
        .register(["elf"], ["intel"], ElfIntelSyntax)
        .register(["elf"], ["att"], ElfAttSyntax)
    )


__all__ = ["BackendRegistry", "BackendFactory", "Target", "default_registry"]
