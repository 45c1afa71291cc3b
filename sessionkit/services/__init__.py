"""Service layer helpers"""

from .delegation import DelegationService
from .versioning import (
    default_version,
    detect_account_version,
    migration_path,
    needs_migration,
    version_info,
)

__all__ = [
    "DelegationService",
    "default_version",
    "detect_account_version",
    "migration_path",
    "needs_migration",
    "version_info",
]
