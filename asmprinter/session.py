"""Printing sessions: configuration, backend lookup and decoder ownership."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Set, TextIO

from .decoder import CapstoneDecoder, InstructionDecoder
from .elements import ElementPrinter
from .layout import LayoutReport, LayoutTraversal
from .model import ProgramModel
from .sections import SectionTracker
from .symbols import SymbolResolver
from .syntax.base import SyntaxBackend
from .syntax.registry import BackendRegistry, default_registry

logger = logging.getLogger(__name__)

DecoderFactory = Callable[[SyntaxBackend], InstructionDecoder]


@dataclass
class PrinterConfig:
    """Options of one printing job.

    A bare ``PrinterConfig()`` skips no functions; use :meth:`for_target` to
    start from the target's own skip list (the ELF runtime functions).
    """

    target_format: str = "elf"
    target_syntax: str = "intel"
    debug: bool = False
    skip_functions: Set[str] = field(default_factory=set)

    @classmethod
    def for_target(
        cls,
        target_format: str,
        target_syntax: Optional[str] = None,
        *,
        registry: Optional[BackendRegistry] = None,
        debug: bool = False,
    ) -> "PrinterConfig":
        """Build a configuration seeded with the target's default skip list."""

        registry = registry or default_registry()
        syntax = target_syntax or registry.default_syntax(target_format)
        if syntax is None:
            raise KeyError(f"no default syntax for format {target_format!r}")
        backend = registry.create(target_format, syntax)
        return cls(
            target_format=target_format,
            target_syntax=syntax,
            debug=debug,
            skip_functions=set(backend.default_skip_functions),
        )

    def keep_function(self, name: str) -> None:
        self.skip_functions.discard(name)

    def skip_function(self, name: str) -> None:
        self.skip_functions.add(name)


def _capstone_for(backend: SyntaxBackend) -> InstructionDecoder:
    return CapstoneDecoder(syntax=backend.decoder_syntax)


class PrettyPrinter:
    """Render a :class:`ProgramModel` as assembly for the configured target.

    Every call to :meth:`print` is an independent session with its own
    backend instance and its own decoder handle, so separate printers (or
    separate calls) never share mutable state.  Only the model and the
    registry are shared and both are read-only.
    """

    def __init__(
        self,
        config: Optional[PrinterConfig] = None,
        *,
        registry: Optional[BackendRegistry] = None,
        decoder_factory: DecoderFactory = _capstone_for,
    ) -> None:
        self.registry = registry or default_registry()
        self.config = config or PrinterConfig.for_target("elf", registry=self.registry)
        self.decoder_factory = decoder_factory
        # raises KeyError for unregistered targets
        self.registry.create(self.config.target_format, self.config.target_syntax)

    def print(self, model: ProgramModel, stream: TextIO) -> LayoutReport:
        config = self.config
        backend = self.registry.create(config.target_format, config.target_syntax)
        resolver = SymbolResolver(
            model,
            skip_sections=backend.skip_sections,
            skip_functions=config.skip_functions,
            plt_sections=backend.plt_sections,
            got_sections=backend.got_sections,
            debug=config.debug,
        )
        sections = SectionTracker(
            model,
            backend,
            skip_sections=backend.skip_sections,
            skip_data_sections=backend.skip_data_sections,
        )
        with self.decoder_factory(backend) as decoder:
            elements = ElementPrinter(
                model, backend, resolver, sections, decoder, debug=config.debug
            )
            report = LayoutTraversal(model, backend, resolver, sections, elements).run()

        stream.write("\n".join(report.lines) + "\n")
        logger.info(
            "printed %d element(s) for %s/%s, %d overlap(s) dropped",
            report.printed,
            config.target_format,
            config.target_syntax,
            len(report.overlaps),
        )
        return report

    def render(self, model: ProgramModel) -> str:
        buffer = io.StringIO()
        self.print(model, buffer)
        return buffer.getvalue()

    def write(self, model: ProgramModel, output_path: Path) -> LayoutReport:
        """Render ``model`` and only then replace ``output_path``."""

        buffer = io.StringIO()
        report = self.print(model, buffer)
        output_path.write_text(buffer.getvalue(), "utf-8")
        return report


__all__ = ["PrinterConfig", "PrettyPrinter", "DecoderFactory"]
