"""
Domain errors raised by the services.

All of them are ``ValueError`` subclasses so routers can keep translating
``ValueError`` into a 400 response and only special-case what needs a
different status code.
"""


class AasDecodeError(ValueError):
    """A document could not be parsed as AAS XML or JSON."""


class ElementNotFound(ValueError):
    """No element exists at the given idShort path."""

    def __init__(self, path: list[str]):
        self.path = list(path)
        super().__init__(f"Element not found: {' > '.join(self.path) or '<root>'}")


class ExportBlocked(ValueError):
    """Export refused because validation found problems or is stale."""

    def __init__(self, message: str, issues: list | None = None):
        super().__init__(message)
        self.issues = issues or []


class TemplateNotFound(ValueError):
    """No loadable submodel template exists at the given catalogue path."""
