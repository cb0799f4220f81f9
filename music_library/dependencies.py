from music_library.audio.storage import LocalBlobStore
from music_library.db.session import async_session_factory
from music_library.gateway.base import DataStoreGateway
from music_library.gateway.sql import SqlGateway


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore.from_settings()


def get_gateway() -> DataStoreGateway:
    return SqlGateway(async_session_factory, get_blob_store())
