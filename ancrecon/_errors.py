"""
_errors.py
==========
Exception hierarchy for ancrecon.

Every fatal condition raised by the package derives from
``ReconstructionError``.  The two concrete families also derive from
``ValueError`` so callers that only care about "bad input" can catch the
builtin type.

  ReconstructionError
    ParseError           malformed tree string, unparseable numeric field
      GenomeFormatError  malformed genome, join-hint or score record
    ConsistencyError     structurally valid input that does not fit together
                         (missing reference species, index outside the
                         matrix, negative branch length, ...)

Data-incompleteness (a leaf that does not constrain a pair) and assembler
rejections (cycles, claimed ends) are not errors and never raise.
"""


class ReconstructionError(Exception):
    """Base class for all fatal ancrecon errors."""


class ParseError(ReconstructionError, ValueError):
    """Malformed input text."""

    def __init__(self, message: str, line: int = None, text: str = None):
        self.line = line
        self.text = text
        if line is not None:
            message = f"line {line}: {message}"
        if text is not None:
            message = f"{message}: {text!r}"
        super().__init__(message)


class GenomeFormatError(ParseError):
    """Malformed genome, join-hint or adjacency-score record."""


class ConsistencyError(ReconstructionError, ValueError):
    """Inputs that parse individually but are inconsistent with each other."""
