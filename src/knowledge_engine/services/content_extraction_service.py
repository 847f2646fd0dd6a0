"""Text extraction from documents prior to chunking."""

from typing import Callable, Dict, Optional

from bs4 import BeautifulSoup

from knowledge_engine.config import get_settings
from knowledge_engine.database.models import Answer, Document
from knowledge_engine.utils.logging import get_logger

logger = get_logger("content_extraction_service")


def strip_html(markup: str) -> str:
    """Plain text of an HTML fragment, scripts and styles removed."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(separator=" ")


class ContentExtractionService:
    """
    Produce the text that gets chunked and embedded for a document.

    Supports:
    - markdown, txt: body as-is
    - html: tags stripped with BeautifulSoup
    - questions: ``Question: <title>``, body and ``Best Answer: ...``

    An optional document context is prepended as ``Context: ...`` and the
    result is truncated to the configured maximum length.
    """

    def __init__(self, max_content_length: Optional[int] = None):
        self.max_content_length = max_content_length or get_settings().chunking.max_content_length
        self._extractors: Dict[str, Callable[[str], str]] = {
            "markdown": self._extract_plain,
            "txt": self._extract_plain,
            "html": self._extract_html,
        }

    def extract(self, document: Document, best_answer: Optional[Answer] = None) -> str:
        """
        Extract embeddable text.

        Args:
            document: Document to extract from
            best_answer: Accepted or top-voted answer, for questions

        Returns:
            Extracted text, possibly empty
        """
        if document.kind == "question":
            content = self._question_text(document, best_answer)
        else:
            content = self._body_text(document)

        if not content.strip():
            return ""

        if document.context and document.context.strip():
            content = f"Context: {document.context.strip()}\n\n{content}"

        return self._truncate(content)

    def _body_text(self, document: Document) -> str:
        extractor = self._extractors.get(document.content_type or "markdown")
        if extractor is None:
            logger.warning(
                f"Unknown content type '{document.content_type}' for document {document.id}, using raw body"
            )
            extractor = self._extract_plain
        return extractor(document.body or "")

    def _question_text(self, document: Document, best_answer: Optional[Answer]) -> str:
        parts = [f"Question: {document.title}", self._body_text(document)]
        if best_answer is not None and best_answer.body:
            parts.append(f"Best Answer: {best_answer.body}")
        return "\n\n".join(part for part in parts if part)

    @staticmethod
    def _extract_plain(body: str) -> str:
        return body

    @staticmethod
    def _extract_html(body: str) -> str:
        if not body.strip():
            return ""
        return strip_html(body)

    def _truncate(self, content: str) -> str:
        if len(content) <= self.max_content_length:
            return content
        logger.debug(f"Truncating extracted content from {len(content)} to {self.max_content_length} chars")
        return content[: self.max_content_length]
