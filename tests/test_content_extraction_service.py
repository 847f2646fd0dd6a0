"""Tests for content extraction."""

from knowledge_engine.database.models import Answer, Document
from knowledge_engine.services.content_extraction_service import ContentExtractionService, strip_html


def make_document(**kwargs) -> Document:
    values = {"id": "doc-1", "kind": "article", "title": "Title", "body": "", "content_type": "markdown"}
    values.update(kwargs)
    return Document(**values)


class TestContentExtractionService:
    def test_markdown_body_as_is(self):
        document = make_document(body="# Heading\n\nSome *text*.")
        assert ContentExtractionService().extract(document) == "# Heading\n\nSome *text*."

    def test_html_is_stripped(self):
        document = make_document(
            content_type="html",
            body="<p>Hello <b>world</b></p><script>alert(1)</script><style>p {}</style>",
        )
        text = ContentExtractionService().extract(document)

        assert "Hello" in text and "world" in text
        assert "alert" not in text
        assert "<" not in text

    def test_unknown_content_type_uses_raw_body(self):
        document = make_document(content_type="rst", body="Raw body")
        assert ContentExtractionService().extract(document) == "Raw body"

    def test_blank_body(self):
        assert ContentExtractionService().extract(make_document(body="   ")) == ""

    def test_context_is_prepended(self):
        document = make_document(body="Body text", context="  Billing FAQ ")
        assert ContentExtractionService().extract(document) == "Context: Billing FAQ\n\nBody text"

    def test_context_alone_is_not_content(self):
        document = make_document(body="", context="Billing FAQ")
        assert ContentExtractionService().extract(document) == ""

    def test_question_with_best_answer(self):
        document = make_document(kind="question", title="Why?", body="Because.")
        answer = Answer(body="That is why.")

        text = ContentExtractionService().extract(document, answer)

        assert text == "Question: Why?\n\nBecause.\n\nBest Answer: That is why."

    def test_question_without_body_or_answer(self):
        document = make_document(kind="question", title="Why?", body="")
        assert ContentExtractionService().extract(document) == "Question: Why?"

    def test_truncates_to_max_length(self):
        document = make_document(body="x" * 50)
        assert ContentExtractionService(max_content_length=10).extract(document) == "x" * 10


def test_strip_html_drops_noscript():
    assert strip_html("<div>Visible<noscript>Hidden</noscript></div>").strip() == "Visible"
