"""Domain exceptions shared by the service layer.

Routers translate these into HTTP responses: ``NotFoundError`` -> 404,
``ConflictError`` -> 409, any other ``ValueError`` -> 400.
"""


class NotFoundError(LookupError):
    """A referenced row does not exist (or is not visible to the caller)."""


class ConflictError(ValueError):
    """The request conflicts with the current state of a resource."""
