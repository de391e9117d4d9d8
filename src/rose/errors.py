"""Exception types shared across the engine."""


class RoseError(Exception):
    """Base class for engine errors."""


class StorageError(RoseError):
    """A storage read or write failed."""


class CatalogError(RoseError):
    """The configured menu catalog could not be parsed."""


class GenerationError(RoseError):
    """The text-generation call failed or returned nothing usable.

    Attributes:
        status_code: HTTP status reported by the provider, or None when the
            request never got a response (timeout, connection error).
        body: Provider error body or a short description.
    """

    def __init__(self, status_code: int | None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"generation failed (status={status_code}): {body}")
