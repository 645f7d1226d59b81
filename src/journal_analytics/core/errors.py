"""Custom exception hierarchy for the journal engine."""


class JournalError(Exception):
    """Base exception for all journal engine errors."""


# --- Configuration ---
class ConfigError(JournalError):
    """Invalid or missing configuration."""


# --- Request input ---
class InputError(JournalError):
    """A request parameter is invalid and must be corrected by the caller."""


class InvalidDateRangeError(InputError):
    """Unparseable date or start date after end date."""


class UnknownPairingMethodError(InputError):
    """Pairing method is neither FIFO nor LIFO."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Unknown pairing method {value!r}; expected 'FIFO' or 'LIFO'"
        )


class ConcentrationPercentError(InputError):
    """Concentration percent outside the supported [5, 30] range."""


class InvalidLimitError(InputError):
    """Result limit is not a positive integer."""


class UnknownStrategyError(InputError):
    """Referenced strategy id does not exist."""


class UnknownExecutionError(InputError):
    """Referenced execution id does not exist."""


class CsvImportError(InputError):
    """CSV text failed validation; nothing was imported."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        summary = "; ".join(self.errors[:5])
        more = f" (+{len(self.errors) - 5} more)" if len(self.errors) > 5 else ""
        super().__init__(f"CSV import rejected: {summary}{more}")


# --- Storage ---
class StorageError(JournalError):
    """Trade store read or write failure."""
