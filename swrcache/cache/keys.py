"""
Key serialization and derived cache key builders.

A key descriptor is a scalar, a list/tuple of arguments, or a callable
producing one of those. Serialization is pure: no cache or network access.
"""
import itertools
import json
import logging
import threading
import weakref
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .core import SerializedKey

logger = logging.getLogger("swrcache.keys")

KeyDescriptor = Union[str, int, float, list, tuple, Callable[[], Any], None]

ARGS_PREFIX = "arg@"
ARGS_SEP = "@"
CONTEXT_PREFIX = "ctx@"
PAGE_SIZE_PREFIX = "len@"
ERROR_PREFIX = "err@"
INFINITE_MARKER = "inf"

NOT_READY = SerializedKey()

# Objects that can't be rendered as JSON get a per-process id
_object_ids: "weakref.WeakKeyDictionary[Any, int]" = weakref.WeakKeyDictionary()
# id(obj) -> (obj, oid); the object is pinned so its id is never reused
_pinned_ids: Dict[int, Tuple[Any, int]] = {}
_id_counter = itertools.count(1)
_id_lock = threading.Lock()


def _object_id(obj: Any) -> str:
    with _id_lock:
        try:
            oid = _object_ids.get(obj)
            if oid is None:
                oid = next(_id_counter)
                _object_ids[obj] = oid
        except TypeError:
            # not weak-referenceable or unhashable
            pinned = _pinned_ids.get(id(obj))
            if pinned is None or pinned[0] is not obj:
                pinned = (obj, next(_id_counter))
                _pinned_ids[id(obj)] = pinned
            oid = pinned[1]
    return f"#{oid}"


def stable_hash(value: Any) -> str:
    """
    Render one key argument as a stable string.

    Containers are rendered structurally; only leaves that JSON can't
    represent fall back to their per-process object id.
    """
    try:
        return json.dumps(
            value, sort_keys=True, separators=(",", ":"), default=_object_id
        )
    except (TypeError, ValueError):
        # e.g. non-string dict keys or circular containers
        return _object_id(value)


def serialize(descriptor: KeyDescriptor) -> SerializedKey:
    """
    Turn a key descriptor into a SerializedKey.

    Returns NOT_READY when a callable descriptor raises or yields a falsy
    key, or when the descriptor itself is None/False/empty.
    """
    if callable(descriptor):
        try:
            descriptor = descriptor()
        except Exception as e:
            # dependency not ready yet
            logger.debug(f"Key function not ready: {e!r}")
            return NOT_READY

    if descriptor is None or descriptor is False:
        return NOT_READY

    if isinstance(descriptor, (list, tuple)):
        if not descriptor:
            return NOT_READY
        args = tuple(descriptor)
        identity = ARGS_PREFIX + ARGS_SEP.join(stable_hash(a) for a in args)
        return SerializedKey(identity=identity, args=args)

    identity = str(descriptor)
    if not identity:
        return NOT_READY
    return SerializedKey(identity=identity, args=None)


def serialize_page(
    get_key: Callable[[int, Any], Any],
    page_index: int,
    previous_page_data: Any,
) -> SerializedKey:
    """Serialize the key a page loader produces for ``page_index``."""
    return serialize(lambda: get_key(page_index, previous_page_data))


def context_key(first_page_key: str) -> str:
    """Cache key of the pending PageContext of a paginated sequence."""
    return f"{CONTEXT_PREFIX}{first_page_key}"


def page_size_key(first_page_key: str) -> str:
    """Cache key of the page count of a paginated sequence."""
    return f"{PAGE_SIZE_PREFIX}{first_page_key}"


def error_key(identity: str) -> str:
    """Cache key holding the last error of ``identity``."""
    return f"{ERROR_PREFIX}{identity}"


def infinite_key(first_page_key: Optional[str]) -> SerializedKey:
    """Key of the assembled page array for a sequence."""
    if not first_page_key:
        return NOT_READY
    return serialize([INFINITE_MARKER, first_page_key])


def as_descriptor(serialized: SerializedKey) -> KeyDescriptor:
    """Rebuild a descriptor that serializes back to ``serialized``."""
    if serialized.args is not None:
        return list(serialized.args)
    return serialized.identity
