"""Storage backend descriptor cache and public URL helpers."""

from .models import StorageConfig
from .types import PUBLIC_KEY_PREFIX

# Backend used before /storage/config existed; served when the config is unknown
LEGACY_PUBLIC_URL_BASE = "https://s3.eu-central-2.wasabisys.com/vlibe.com"
LEGACY_STORAGE_CONFIG = StorageConfig(
    provider="wasabi",
    public_url_base=LEGACY_PUBLIC_URL_BASE,
)


def build_public_url(base: str, key: str) -> str:
    """Join a public URL base and a storage key.

    One trailing slash is stripped from ``base``.
    """
    return f"{base.removesuffix('/')}/{key}"


def legacy_public_url(key: str) -> str:
    """Public URL of ``key`` on the legacy backend."""
    return build_public_url(LEGACY_PUBLIC_URL_BASE, key)


def is_public_key(key: str) -> bool:
    """Whether ``key`` lives under the public path."""
    return key.startswith(PUBLIC_KEY_PREFIX)


class StorageConfigCache:
    """
    Per-client cache of the storage backend descriptor.

    Two states: unresolved (nothing cached) and resolved. There is no TTL; a
    resolved config stays until :meth:`clear` is called.
    """

    def __init__(self) -> None:
        self._config: StorageConfig | None = None

    @property
    def resolved(self) -> bool:
        return self._config is not None

    @property
    def config(self) -> StorageConfig | None:
        return self._config

    def resolve(self, config: StorageConfig) -> None:
        self._config = config

    def clear(self) -> None:
        self._config = None

    def public_url(self, key: str) -> str:
        """Public URL of ``key`` from the cached config, or the legacy form."""
        if self._config is None:
            return legacy_public_url(key)
        return build_public_url(self._config.public_url_base, key)
