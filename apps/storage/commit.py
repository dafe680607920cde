import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from apps.storage.service import ObjectStore, discard_quietly
from common.exceptions import AppError, DependencyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def commit_with_compensation(
    store: ObjectStore,
    key: str,
    data: bytes,
    content_type: Optional[str],
    write_record: Callable[[], Awaitable[T]],
    superseded_key: Optional[str] = None,
    error_message: str = "Failed to store record",
) -> T:
    """
    Write an object, then the database record that points at it.

    1. Upload ``data`` to ``key``. If this fails nothing has been written and the error propagates.
    2. Run ``write_record``. If it fails the new object is deleted (best effort) and the
       original error is re-raised; database errors are reported as DependencyError.
    3. On success, ``superseded_key`` (the file the record pointed at before) is deleted,
       best effort. Until then the old file is merely unreferenced.
    """
    await store.upload(key, data, content_type)

    try:
        result = await write_record()
    except AppError:
        await discard_quietly(store, key, "record write failed")
        raise
    except SQLAlchemyError as exc:
        logger.error("Record write for %s failed: %s", key, exc)
        await discard_quietly(store, key, "record write failed")
        raise DependencyError(error_message, details=str(exc.__cause__ or exc)) from exc
    except Exception:
        await discard_quietly(store, key, "record write failed")
        raise

    if superseded_key and superseded_key != key:
        await discard_quietly(store, superseded_key, "superseded")
    return result
