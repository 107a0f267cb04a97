"""Custom exceptions for the extraction context with document references."""

from typing import Optional


class DSXParsingError(Exception):
    """
    Exception raised when a document cannot yield a job-metadata model.

    Attributes:
        message: Error description
        document_name: Name of the document being parsed
        snippet: Leading text of the offending document
    """

    def __init__(
        self,
        message: str,
        document_name: Optional[str] = None,
        snippet: Optional[str] = None,
    ):
        self.message = message
        self.document_name = document_name
        self.snippet = snippet

        parts = [message]

        if document_name:
            parts.append(f"Document: {document_name}")

        if snippet:
            # Truncate snippet if too long
            snippet = snippet[:200] + "..." if len(snippet) > 200 else snippet
            parts.append(f"\nActual content:\n{snippet}")

        super().__init__("\n".join(parts))


class UnreadableDocumentError(DSXParsingError):
    """
    Raised when document bytes cannot be read or decoded, or an archive cannot be opened.

    Fatal for that single document only; never retried automatically.
    """

    pass
