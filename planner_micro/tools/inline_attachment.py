import base64
import binascii

from google.generativeai import protos


def decode_base64_payload(data: str) -> bytes:
    """Decode a base64 payload, accepting a ``data:<mime>;base64,`` URL prefix."""
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Attachment is not valid base64: {e}") from e


def build_inline_part(*, data: bytes, mime_type: str) -> protos.Part:
    """Return a Gemini part carrying an inline blob attachment.

    Args:
        data: Raw file bytes to send with the request.
        mime_type: Media type understood by Gemini (e.g. ``image/png``).
    """
    return protos.Part(inline_data=protos.Blob(mime_type=mime_type, data=data))


def build_inline_part_from_base64(*, data: str, mime_type: str) -> protos.Part:
    return build_inline_part(data=decode_base64_payload(data), mime_type=mime_type)


def build_text_part(text: str) -> protos.Part:
    return protos.Part(text=text)
