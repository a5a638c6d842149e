"""Exception hierarchy for conditions that abort a single action."""

from __future__ import annotations


class SpoofctlError(Exception):
    """Base class for all spoofctl errors."""


class ConfigError(SpoofctlError, ValueError):
    """Configuration value is missing or malformed."""


class PreconditionError(SpoofctlError):
    """An action cannot start (missing privilege, missing binary)."""


class ValidationError(SpoofctlError):
    """Input to an action failed validation; nothing was mutated."""


class NoValidInterfacesError(ValidationError):
    """None of the candidate interfaces exist and are up."""

    def __init__(self, invalid: list[str]) -> None:
        self.invalid = list(invalid)
        if invalid:
            msg = "No valid network interfaces (skipped: " + ", ".join(invalid) + ")"
        else:
            msg = "No candidate network interfaces found"
        super().__init__(msg)


class EmptyRulesetError(ValidationError):
    """Compiling redirect rules for zero interfaces."""

    def __init__(self) -> None:
        super().__init__("Refusing to compile an empty redirect ruleset")
