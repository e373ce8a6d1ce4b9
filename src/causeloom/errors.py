from __future__ import annotations


class CausalEngineError(Exception):
    """Base class for failures raised by the causal hierarchy engine."""


class InputContractError(CausalEngineError, ValueError):
    """The transcript or eligibility mask violates the input contract."""


class DetectorError(CausalEngineError):
    """An external detector failed or returned a malformed result."""

    def __init__(self, detector: str, line_index: int, reason: str):
        self.detector = detector
        self.line_index = line_index
        super().__init__(f"{detector} failed on line {line_index}: {reason}")


class ScoringError(CausalEngineError, ArithmeticError):
    """A score came out NaN or infinite."""
