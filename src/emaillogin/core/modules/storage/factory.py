from emaillogin.config import Config
from emaillogin.core.modules.storage.fs import FileStorage
from emaillogin.core.modules.storage.memory import MemoryStorage
from emaillogin.core.modules.storage.mongo import MongoStorage
from emaillogin.core.modules.storage.port import Storage


def build_storage(config: Config) -> Storage:
    """Instantiate the storage backend selected by configuration."""
    match config.storage_backend:
        case "mongo":
            return MongoStorage(config.database_url)
        case "fs":
            return FileStorage(config.storage_dir)
        case "memory":
            return MemoryStorage()
    raise ValueError(f"Unknown storage backend '{config.storage_backend}'")
