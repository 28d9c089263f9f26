"""
Configuration of code generation.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SynthesisOptions:
    """
    Options controlling the shape of generated units.

    Options are passed explicitly to the synthesizer; there is no global
    configuration.
    """

    runtime_module: str = "izumi.merge.runtime"
    factory_suffix: str = "Factory"
    component_suffix: str = "_Merged"
    header: str = "# Generated by izumi.merge. Do not edit."
    docstrings: bool = True
    indent: str = "    "

    def __post_init__(self) -> None:
        if not self.factory_suffix:
            raise ValueError("factory_suffix must not be empty")
        if not self.component_suffix:
            raise ValueError("component_suffix must not be empty")
        if not self.indent or self.indent.strip(" "):
            raise ValueError("indent must consist of spaces only")
