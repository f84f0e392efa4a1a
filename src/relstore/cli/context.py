"""CLI context management for storage connections and shared state."""

import os
from dataclasses import dataclass, field

from relstore import Storage


def get_database_url(url: str | None) -> str:
    """Resolve database URL from CLI arg, environment variable, or default.

    Priority:
    1. Explicit URL argument
    2. RELSTORE_URL environment variable
    3. Default: sqlite:///./relstore.db
    """
    if url:
        return url
    if env_url := os.getenv("RELSTORE_URL"):
        return env_url
    return "sqlite:///./relstore.db"


def get_models_path(path: str | None) -> str | None:
    """Resolve the model file from CLI arg or the RELSTORE_MODELS environment variable."""
    return path or os.getenv("RELSTORE_MODELS") or None


@dataclass
class CLIContext:
    """Shared context for CLI commands.

    Manages the storage lifecycle and output preferences.
    """

    database_url: str
    models_path: str | None
    echo: bool
    json_output: bool
    _storage: Storage | None = field(default=None, init=False, repr=False)

    def get_storage(self) -> Storage:
        """Get or create the storage, with models loaded (lazy initialization).

        Raises:
            FileNotFoundError: If the model file doesn't exist
            DefinitionError: If the model file is malformed
        """
        if self._storage is None:
            storage = Storage(self.database_url, echo=self.echo)
            if self.models_path:
                storage.load_models(self.models_path)
            self._storage = storage
        return self._storage

    def close(self) -> None:
        """Close storage connection if open."""
        if self._storage is not None:
            self._storage.close()
            self._storage = None
