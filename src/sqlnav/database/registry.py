# src/sqlnav/database/registry.py
"""Backend adapter registry for sqlnav."""

from typing import Dict, List, Optional, Union

from sqlnav.core.exceptions import ConfigValidationError, ErrorCodes
from sqlnav.core.protocols import BackendAdapter
from sqlnav.core.types import BackendKind
from sqlnav.logging import get_logger


class AdapterRegistry:
    """Registry mapping each backend kind to its adapter.

    Adapters are stateless, so one instance per kind serves the whole
    session. Backends registered as experimental are offered to the user
    but promise no parity with the others.
    """

    def __init__(self):
        self.logger = get_logger("sqlnav.database.registry")
        self._adapters: Dict[BackendKind, BackendAdapter] = {}
        self._metadata: Dict[BackendKind, Dict[str, str]] = {}

    def register_adapter(
        self,
        kind: Union[BackendKind, str],
        adapter: BackendAdapter,
        description: Optional[str] = None,
        experimental: bool = False,
    ) -> None:
        """Register an adapter for a backend kind.

        Args:
            kind: Backend the adapter serves
            adapter: Object implementing the BackendAdapter protocol
            description: Optional description shown next to the backend
            experimental: Mark the backend as reserved/experimental

        Raises:
            ConfigValidationError: If the adapter does not implement the protocol
        """
        kind = BackendKind.parse(kind)

        if not isinstance(adapter, BackendAdapter):
            raise ConfigValidationError(
                f"Adapter {type(adapter).__name__} does not implement BackendAdapter",
                code=ErrorCodes.CONFIG_INVALID,
                context={"backend": kind.value, "class": type(adapter).__name__},
            )

        if kind in self._adapters:
            self.logger.warning(
                "Overriding existing adapter registration",
                backend=kind.value,
                existing_class=type(self._adapters[kind]).__name__,
                new_class=type(adapter).__name__,
            )

        self._adapters[kind] = adapter
        self._metadata[kind] = {
            "class_name": type(adapter).__name__,
            "description": description or f"{kind.label} adapter",
            "backend": kind.value,
            "label": kind.label,
            "experimental": "true" if experimental else "false",
        }

        self.logger.info(
            "Backend adapter registered",
            backend=kind.value,
            class_name=type(adapter).__name__,
            experimental=experimental,
        )

    def get_adapter(self, kind: Union[BackendKind, str]) -> BackendAdapter:
        """Get the adapter for a backend kind.

        Raises:
            ConfigValidationError: If no adapter is registered for ``kind``
        """
        try:
            kind = BackendKind.parse(kind)
        except ValueError:
            kind_value = str(kind)
        else:
            kind_value = kind.value
            if kind in self._adapters:
                return self._adapters[kind]

        raise ConfigValidationError(
            f"No adapter registered for backend: {kind_value}",
            code=ErrorCodes.BACKEND_NOT_REGISTERED,
            errors={"kind": f"backend {kind_value!r} is not available"},
            context={
                "backend": kind_value,
                "available_backends": [k.value for k in self._adapters],
            },
        )

    def available_backends(self) -> List[BackendKind]:
        """Registered backends in declaration order of BackendKind."""
        return [kind for kind in BackendKind if kind in self._adapters]

    def is_backend_supported(self, kind: Union[BackendKind, str]) -> bool:
        try:
            return BackendKind.parse(kind) in self._adapters
        except ValueError:
            return False

    def is_experimental(self, kind: Union[BackendKind, str]) -> bool:
        return self.get_adapter_metadata(kind)["experimental"] == "true"

    def get_adapter_metadata(self, kind: Union[BackendKind, str]) -> Dict[str, str]:
        """Get metadata for a registered adapter.

        Raises:
            ConfigValidationError: If no adapter is registered for ``kind``
        """
        self.get_adapter(kind)
        return self._metadata[BackendKind.parse(kind)].copy()

    def list_adapters(self) -> Dict[str, Dict[str, str]]:
        return {kind.value: metadata.copy() for kind, metadata in self._metadata.items()}

    def unregister_adapter(self, kind: Union[BackendKind, str]) -> None:
        """Unregister a backend adapter.

        Raises:
            ConfigValidationError: If no adapter is registered for ``kind``
        """
        self.get_adapter(kind)
        kind = BackendKind.parse(kind)

        del self._adapters[kind]
        del self._metadata[kind]

        self.logger.info("Backend adapter unregistered", backend=kind.value)

    def clear_registry(self) -> None:
        backends = [kind.value for kind in self._adapters]
        self._adapters.clear()
        self._metadata.clear()

        self.logger.info("Registry cleared", unregistered_backends=backends)

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, kind: object) -> bool:
        return isinstance(kind, (BackendKind, str)) and self.is_backend_supported(kind)
