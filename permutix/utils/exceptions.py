"""Custom exceptions for Permutix."""


class PermutixError(Exception):
    """Base exception for Permutix."""
    pass


class ConfigurationError(PermutixError, ValueError):
    """Error in configuration or in the dimensions of the inputs."""
    pass


class StatisticalError(PermutixError):
    """Invalid statistic image or null distribution."""
    pass


class PipelineError(PermutixError, RuntimeError):
    """Internal inconsistency detected while running the permutation pipeline."""
    pass
