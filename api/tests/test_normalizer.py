"""
Unit tests for provider content normalization.
"""

import base64

from codechat.models.chat import Attachment, Message
from codechat.services import normalizer

DOC_BLOCK = '\n\nDocument "notes.txt" content:\nTODO: fix the login flow'


def _user(content, attachments=None):
    return Message(id="user-1", role="user", content=content, attachments=attachments)


def _assistant(content):
    return Message(id="assistant-1", role="assistant", content=content)


class TestContentBuilders:
    def test_openai_image_and_document(self, image_attachment, document_attachment):
        """Text comes first, then one part per attachment in order."""
        content = normalizer.build_openai_content("look", [image_attachment, document_attachment])

        assert content[0] == {"type": "text", "text": "look"}
        assert content[1]["type"] == "image_url"
        assert content[1]["image_url"]["url"] == f"data:image/png;base64,{image_attachment.data}"
        assert content[2] == {"type": "text", "text": DOC_BLOCK}

    def test_anthropic_image_source(self, image_attachment):
        content = normalizer.build_anthropic_content("look", [image_attachment])

        assert content[1] == {
            "type": "image",
            "source": {"type": "base64", "media_type": "image/png", "data": image_attachment.data},
        }

    def test_gemini_parts(self, image_attachment, document_attachment):
        parts = normalizer.build_gemini_parts("look", [document_attachment, image_attachment])

        assert parts[0] == {"text": "look"}
        assert parts[1] == {"text": DOC_BLOCK}
        assert parts[2] == {"inlineData": {"mimeType": "image/png", "data": image_attachment.data}}

    def test_document_follows_primary_text_for_every_provider(self, document_attachment):
        """Documents are inlined as text right after the main text, never as files."""
        openai = normalizer.build_openai_content("q", [document_attachment])
        anthropic = normalizer.build_anthropic_content("q", [document_attachment])
        gemini = normalizer.build_gemini_parts("q", [document_attachment])

        assert openai[1]["text"] == DOC_BLOCK
        assert anthropic[1]["text"] == DOC_BLOCK
        assert gemini[1]["text"] == DOC_BLOCK
        assert all(part.get("type") != "document" for part in openai + anthropic)

    def test_invalid_utf8_document_is_replaced(self):
        attachment = Attachment(
            type="document",
            data=base64.b64encode(b"ok \xff\xfe").decode(),
            name="blob.bin",
            mime_type="application/octet-stream",
            size=5,
        )
        assert normalizer.decode_document(attachment) == "ok \ufffd\ufffd"


class TestHistoryTranslation:
    def test_openai_prepends_system_and_expands_only_attachments(self, image_attachment):
        messages = [_user("first"), _assistant("reply"), _user("see image", [image_attachment])]

        converted = normalizer.to_openai_messages("SYSTEM", messages)

        assert converted[0] == {"role": "system", "content": "SYSTEM"}
        assert converted[1] == {"role": "user", "content": "first"}
        assert converted[2] == {"role": "assistant", "content": "reply"}
        assert isinstance(converted[3]["content"], list)
        assert converted[3]["content"][1]["type"] == "image_url"

    def test_anthropic_always_uses_part_arrays(self):
        converted = normalizer.to_anthropic_messages([_user("list files"), _assistant("done")])

        assert converted == [
            {"role": "user", "content": [{"type": "text", "text": "list files"}]},
            {"role": "assistant", "content": [{"type": "text", "text": "done"}]},
        ]

    def test_gemini_renames_assistant_and_expands_latest_only(self, image_attachment):
        messages = [
            _user("older", [image_attachment]),
            _assistant("reply"),
            _user("newest", [image_attachment]),
        ]

        contents = normalizer.to_gemini_contents(messages)

        assert contents[0] == {"role": "user", "parts": [{"text": "older"}]}
        assert contents[1] == {"role": "model", "parts": [{"text": "reply"}]}
        assert contents[2]["role"] == "user"
        assert contents[2]["parts"][0] == {"text": "newest"}
        assert contents[2]["parts"][1]["inlineData"]["mimeType"] == "image/png"

    def test_gemini_empty_history(self):
        assert normalizer.to_gemini_contents([]) == []
