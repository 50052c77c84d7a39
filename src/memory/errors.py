"""Errors raised by the conversation memory layer."""


class MemoryStoreError(Exception):
    """Base class for conversation memory failures."""


class NotFoundError(MemoryStoreError):
    """A referenced conversation, history entry or step does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class NoActiveConversationError(MemoryStoreError):
    """A message was appended without a resolvable thread."""

    def __init__(self) -> None:
        super().__init__("No active conversation. Call start_conversation() first.")


class InvalidEventTypeError(MemoryStoreError):
    """A timeline event tag is not one of the known lifecycle events."""

    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"Invalid timeline event type: {name!r}")


class DuplicateKeyError(MemoryStoreError):
    """A conversation with the same ID already exists."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Conversation already exists: {key}")


class ProviderError(MemoryStoreError):
    """The embedding provider or the database backend failed."""
