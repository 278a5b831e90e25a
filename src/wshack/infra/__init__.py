"""Infrastructure layer — external system integration.

This layer wraps all interaction with cargo and the filesystem.  Every
raw ``OSError``, subprocess or decoding failure must be caught here and
re-raised as a :class:`~wshack.exceptions.WshackError` subclass.

The classes here satisfy the protocols in :mod:`wshack.core.protocols`
and report progress only through logging; the CLI owns the terminal.
"""

from wshack.infra.cargo import CargoStatus, detect_cargo, require_cargo
from wshack.infra.cargo_metadata import CargoMetadataProvider
from wshack.infra.lockfile import CargoLockRegenerator
from wshack.infra.manifest_store import FileManifestStore
from wshack.infra.publish import CargoPublisher

__all__: list[str] = [
    "CargoLockRegenerator",
    "CargoMetadataProvider",
    "CargoPublisher",
    "CargoStatus",
    "FileManifestStore",
    "detect_cargo",
    "require_cargo",
]
