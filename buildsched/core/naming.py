import hashlib

MAX_NAME_LENGTH = 63
GENERATED_SUFFIX_LENGTH = 5


def child_name(parent: str, suffix: str) -> str:
    """
    Deterministic name for an object owned by ``parent``.

    Short names are ``parent + suffix``. Long parents are truncated and
    disambiguated with an md5 of the full parent so two long parents
    sharing a prefix never collide.
    """
    if len(parent) + len(suffix) <= MAX_NAME_LENGTH:
        return parent + suffix

    digest = hashlib.md5(parent.encode("utf-8")).hexdigest()
    head = MAX_NAME_LENGTH - len(suffix) - len(digest)
    if head < 0:
        return hashlib.md5((parent + suffix).encode("utf-8")).hexdigest()
    return parent[:head] + digest + suffix


def split_key(key: str):
    """Split a ``namespace/name`` key; cluster-scoped keys have no namespace"""
    parts = key.split("/")
    if len(parts) == 1:
        return "", parts[0]
    if len(parts) == 2:
        return parts[0], parts[1]
    raise ValueError(f"unexpected key format: {key!r}")


def object_key(namespace: str, name: str) -> str:
    if not namespace:
        return name
    return f"{namespace}/{name}"
