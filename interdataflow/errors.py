"""
interdataflow/errors.py
=======================

Exception hierarchy for the interdataflow toolchain.

Hierarchy
---------
::

    InterDataflowError (base)
    ├── IRParseError           - textual IR could not be parsed / lowered
    ├── ICFGError              - malformed program or graph structure
    ├── ConfigError            - invalid analysis configuration
    └── SolverDivergenceError  - iteration bound exceeded (non-monotone
                                 transfer function)

The fixpoint core never raises in its steady state: missing facts,
unmatched argument counts and absent call receivers are handled by
defensive rules inside the transfer functions.  Everything here is raised
by the layers *around* the core (front end, graph construction,
configuration, the optional iteration bound).
"""

from __future__ import annotations

from typing import Optional


class InterDataflowError(Exception):
    """Base class for all errors raised by :mod:`interdataflow`."""


class IRParseError(InterDataflowError):
    """Raised when IR source text is malformed.

    Attributes
    ----------
    message : str
        Human-readable description.
    filename : str
        Source name (``"<string>"`` for in-memory text).
    line, column : int, optional
        1-based location of the problem, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        filename: str = "<string>",
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.message = message
        self.filename = filename
        self.line = line
        self.column = column
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.line is not None:
            col = self.column if self.column is not None else 1
            return f"{self.filename}:{self.line}:{col}: {self.message}"
        return f"{self.filename}: {self.message}"


class ICFGError(InterDataflowError):
    """Raised when the program or the interprocedural graph is ill-formed."""


class ConfigError(InterDataflowError):
    """Raised for an invalid :class:`~interdataflow.config.AnalysisConfig`."""


class SolverDivergenceError(InterDataflowError):
    """Raised when the solver exceeds its configured iteration bound.

    A monotone analysis over a finite-height lattice always terminates, so
    hitting the bound means some transfer function is not monotone.
    """

    def __init__(self, iterations: int, pending: int) -> None:
        self.iterations = iterations
        self.pending = pending
        super().__init__(
            f"solver did not reach a fixpoint after {iterations} iterations "
            f"({pending} nodes still pending)"
        )
