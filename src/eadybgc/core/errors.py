"""
Exceptions raised by EADYBGC. Numerical problems that the sanitiser can
recover from (non-finite tendencies, small negative concentrations) are
handled in place and never surface as one of these.
"""


class EadyBGCError(Exception):
    """Base class for errors raised by EADYBGC."""


class SolverDivergenceError(EadyBGCError, RuntimeError):
    """The model state has become non-finite, so the run cannot continue."""


class CheckpointError(EadyBGCError, RuntimeError):
    """An output archive cannot be used to seed a simulation."""


class CheckpointKeyError(CheckpointError, KeyError):
    """A variable requested from an output archive does not exist."""


class ShapeMismatchError(CheckpointError, ValueError):
    """
    An array read from an output archive does not have the same shape as
    the field it is being copied into.
    """

    def __init__(self, name, source_shape, target_shape):
        self.name = name
        self.source_shape = tuple(source_shape)
        self.target_shape = tuple(target_shape)
        super().__init__(
            f"shape of <{name}> on file {self.source_shape} does not match"
            f" the shape of the field it is loaded into {self.target_shape}"
        )
