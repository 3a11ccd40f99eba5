"""
Error types raised by the palette and theme pipeline.
"""


class ThemeError(Exception):
    """Base class for all pipeline errors."""


class InvalidInput(ThemeError, ValueError):
    """Input that cannot be turned into colors: empty palettes, fully
    transparent images, malformed color strings, missing mandatory roles."""


class UnsatisfiableContrast(ThemeError):
    """Contrast requirements still failing after best-effort correction."""

    def __init__(self, issues: list, roles=None):
        self.issues = list(issues)
        self.roles = roles
        pairs = ', '.join(f"{i.foreground_role}/{i.background_role}" for i in self.issues)
        super().__init__(f"{len(self.issues)} contrast requirement(s) cannot be met: {pairs}")


class UnknownParameterRule(ThemeError):
    """A rule table entry that does not describe a known derivation."""

    def __init__(self, parameter: str, reason: str):
        self.parameter = parameter
        self.reason = reason
        super().__init__(f"{parameter}: {reason}")
