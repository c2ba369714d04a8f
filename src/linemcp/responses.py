"""Fluent construction of multi-part tool responses."""

from __future__ import annotations

from linemcp.protocol import ContentPart, ToolResponse


class ToolResponseBuilder:
    """Accumulate content parts and produce a :class:`ToolResponse`.

    Example:
        >>> response = (
        ...     ToolResponseBuilder()
        ...     .add_text("3 files copied")
        ...     .add_warning("1 file skipped")
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._parts: list[ContentPart] = []
        self._is_error: bool | None = None

    def add_content(self, text: str, content_type: str = "text") -> ToolResponseBuilder:
        """Append a part with an explicit content type."""
        self._parts.append(ContentPart(type=content_type, text=text))
        return self

    def add_text(self, text: str) -> ToolResponseBuilder:
        return self.add_content(text)

    def add_texts(self, *texts: str) -> ToolResponseBuilder:
        for text in texts:
            self.add_content(text)
        return self

    def add_warning(self, text: str) -> ToolResponseBuilder:
        return self.add_content(f"Warning: {text}")

    def add_error(self, error: str | BaseException) -> ToolResponseBuilder:
        """Append an error part and flag the response as failed.

        Exceptions are rendered as ``"Error: <message>"``.
        """
        if isinstance(error, BaseException):
            self.add_content(f"Error: {error}")
        else:
            self.add_content(error)
        self._is_error = True
        return self

    def add_success(self, text: str | None = None) -> ToolResponseBuilder:
        """Mark the response as an explicit success, optionally adding text."""
        if text is not None:
            self.add_content(text)
        self._is_error = False
        return self

    def clear(self) -> ToolResponseBuilder:
        self._parts = []
        self._is_error = None
        return self

    def build(self) -> ToolResponse:
        return ToolResponse(content=list(self._parts), is_error=self._is_error)
