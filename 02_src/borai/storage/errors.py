"""Storage errors."""


class StorageUnavailableError(RuntimeError):
    """The session store cannot be read or written right now.

    Recoverable: in-memory state stays authoritative until the next
    successful write.
    """
