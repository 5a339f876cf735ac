"""
Shared business codes used across layers (Domain/Infrastructure).

Storage codes live in `shared.codes.storage_codes` and are re-exported here.
"""
from .storage_codes import SERVICE_STATUS_TO_CODE, StorageCode

__all__ = ["StorageCode", "SERVICE_STATUS_TO_CODE"]
