"""Error types raised while resolving a plugin's source contract.

Every resolution-phase failure derives from ContractError: these are contract
breaks in the plugin's source tree that the caller has to fix, so nothing
retries them. Manifest assembly never raises for a bad field; it returns
warnings instead.
"""
from pathlib import Path
from typing import List, Optional, Sequence


class ContractError(ValueError):
    """Base class for fatal source-contract resolution failures."""


class EntrypointNotFoundError(ContractError):
    """No qualifying entrypoint callsite exists in the source tree."""


class AmbiguousEntrypointError(ContractError):
    """More than one callsite matched the same entrypoint name."""

    def __init__(self, function_name: str, locations: Sequence[str]):
        self.function_name = function_name
        self.locations = list(locations)
        super().__init__(
            f"Found {len(self.locations)} '{function_name}<...>(...)' callsites, expected exactly one: "
            + ", ".join(self.locations)
        )


class IncompleteGenericsError(ContractError):
    """The entrypoint callsite declares fewer generic arguments than required."""


class MissingSettingsSchemaError(ContractError):
    """The options object has no direct settingsSchema property."""


class ResolutionError(ContractError):
    """A reference, type alias or module specifier could not be resolved."""


class CycleError(ResolutionError):
    """A type alias or re-export chain loops back on itself."""

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__("Cycle detected while resolving: " + " -> ".join(self.chain))


class CommandContractError(ContractError):
    """The command generic is neither null nor a Static<typeof X> alias."""


class SupportedEventsError(ContractError):
    """The supported-events generic could not be reduced to string literals."""


class UnknownExcludedEventError(ContractError):
    """An excluded event is not part of the declared supported events."""

    def __init__(self, unknown: Sequence[str], supported: Sequence[str]):
        self.unknown = list(unknown)
        super().__init__(
            f"Cannot exclude unknown event(s) {', '.join(self.unknown)}; "
            f"supported events are: {', '.join(supported)}"
        )


class LoaderStrategyError(Exception):
    """A single runtime loader strategy failed to produce an export map."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        self.message = message
        super().__init__(f"[{strategy}] {message}")


class ModuleLoadError(ContractError):
    """Every runtime loader strategy failed for a module."""

    def __init__(self, module_path: Path, failures: Optional[List[LoaderStrategyError]] = None,
                 message: Optional[str] = None):
        self.module_path = Path(module_path)
        self.failures = list(failures or [])
        if message is None:
            details = "\n".join(f"  - {failure}" for failure in self.failures) or "  - no loader strategies configured"
            message = f"Failed to load module {self.module_path}:\n{details}"
        super().__init__(message)
