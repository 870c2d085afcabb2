"""Session wiring.

A session owns exactly one persistence adapter, one :class:`LedgerStore` and
one :class:`AccessControl`, all created at startup from ``config.ini``. Front
ends receive the :class:`RuntimeContext` and pass it around explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import data_manager, log
from .access_control import AccessControl
from .constants import EXPECTED_SCHEMA_VERSION
from .core_logic import LedgerStore, PersistenceAdapter


@dataclass(frozen=True)
class RuntimeContext:
    """Container for the configuration and live objects of one session."""

    settings: data_manager.ConfigSettings
    adapter: PersistenceAdapter
    store: LedgerStore
    access: AccessControl


def build_runtime_context(settings: data_manager.ConfigSettings, adapter: PersistenceAdapter) -> RuntimeContext:
    """Assemble a context around an already opened adapter."""

    return RuntimeContext(
        settings=settings,
        adapter=adapter,
        store=LedgerStore(adapter),
        access=AccessControl(adapter),
    )


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration, open the workbook and build the session objects.

    Args:
        config_path (Path | None): Optional override path for the
            configuration file. When omitted the data layer searches upward
            from the current working directory.

    Returns:
        RuntimeContext: Fully populated context.

    Raises:
        FileNotFoundError: If the configuration file or workbook is missing.
        KeyError: When mandatory configuration options are missing.
        RuntimeError: If the configured schema version is not supported.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    ensure_schema_version(settings)
    adapter = data_manager.WorkbookStore.open(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return build_runtime_context(settings, adapter)


def ensure_schema_version(settings: data_manager.ConfigSettings) -> None:
    """Reject configurations written for a different workbook layout.

    Raises:
        RuntimeError: If ``settings.schema_version`` differs from
            ``EXPECTED_SCHEMA_VERSION``.
    """
    if settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, settings.schema_version)
        )

    log.debug("Schema version '%s' validated", settings.schema_version)
