"""Common annotated types for field validation.

These types provide consistent validation patterns across the SDK.
"""

from typing import Annotated

from pydantic import Field

# Prefix of the key space served without authentication
PUBLIC_KEY_PREFIX = "vlibe-storage/public/"

# File, folder and project identifiers - opaque, non-empty
ResourceId = Annotated[str, Field(min_length=1)]

# Storage key - path of the object inside the bucket
StorageKey = Annotated[str, Field(min_length=1)]

# Size in bytes
ByteCount = Annotated[int, Field(ge=0)]

# Usage percentage reported by the server (may exceed 100 when over quota)
Percent = Annotated[float, Field(ge=0)]
