"""Error types raised by the Koinos command line client."""

from __future__ import annotations

from typing import Iterable


class KoinosCLIError(RuntimeError):
    """Base class for user-facing command failures.

    ``details`` holds supplementary lines (node logs, advice) that the
    interpreter prints after the error message itself.
    """

    def __init__(self, message: str, details: Iterable[str] | None = None) -> None:
        super().__init__(message)
        self.details: list[str] = list(details or [])


class WalletClosedError(KoinosCLIError):
    def __init__(self) -> None:
        super().__init__("wallet is closed")


class WalletExistsError(KoinosCLIError):
    def __init__(self, path: str) -> None:
        super().__init__(f"wallet file {path} already exists")


class WalletDecryptError(KoinosCLIError):
    def __init__(self) -> None:
        super().__init__("could not decrypt wallet, check your password")


class BlankPasswordError(KoinosCLIError):
    def __init__(self) -> None:
        super().__init__("password cannot be empty")


class OfflineError(KoinosCLIError):
    def __init__(self) -> None:
        super().__init__("not connected to a node, use connect first")


class InvalidAmountError(KoinosCLIError):
    """Raised for malformed or non-positive amounts."""


class InvalidABIError(KoinosCLIError):
    """Raised when a contract ABI cannot be loaded."""


class UnsupportedTypeError(InvalidABIError):
    """Raised when an ABI message uses a field type commands cannot express."""


class ContractError(KoinosCLIError):
    """Raised on duplicate or invalid contract registration."""


class InsufficientRCError(KoinosCLIError):
    def __init__(self, details: Iterable[str] | None = None) -> None:
        super().__init__("insufficient rc", details)


class FileNotFoundCLIError(KoinosCLIError):
    def __init__(self, path: str) -> None:
        super().__init__(f"file {path} not found")


class SessionInProgressError(KoinosCLIError):
    def __init__(self) -> None:
        super().__init__("cannot begin transaction session, session already in progress")


class NoSessionError(KoinosCLIError):
    def __init__(self) -> None:
        super().__init__("no transaction session in progress")
