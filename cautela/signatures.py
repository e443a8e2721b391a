"""
Validação das imagens enviadas pela página de assinatura.

O front-end manda a assinatura desenhada (canvas) e a foto da câmera como
data URLs: ``data:image/png;base64,iVBORw0...``. Aqui só conferimos que o
conteúdo é uma imagem de verdade; nada é gravado em disco.
"""
import base64
import binascii
import io
import re
import warnings

from PIL import Image, UnidentifiedImageError

ALLOWED_IMAGE_MIMES = {"image/png", "image/jpeg", "image/webp"}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


class InvalidImage(ValueError):
    """Data URL ausente, malformada ou que não é uma imagem aceita."""


def decode_data_url(value, field="imagem"):
    """
    Valida ``value`` e retorna ``(mime, bytes)``.

    Levanta InvalidImage com uma mensagem pronta para o usuário.
    """
    if not value or not isinstance(value, str):
        raise InvalidImage(f"{field} é obrigatória.")

    match = _DATA_URL_RE.match(value.strip())
    if not match:
        raise InvalidImage(f"{field} inválida: esperado data URL base64.")

    mime = match.group("mime").lower()
    if mime not in ALLOWED_IMAGE_MIMES:
        raise InvalidImage(f"{field} inválida: use PNG, JPEG ou WebP.")

    try:
        raw = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImage(f"{field} inválida: base64 corrompido.")

    if not raw:
        raise InvalidImage(f"{field} vazia.")

    try:
        # cabeçalho com dimensões absurdas (bomba de descompressão) também é recusado
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(raw)) as img:
                img.verify()
    except (Image.DecompressionBombError, Image.DecompressionBombWarning):
        raise InvalidImage(f"{field} inválida: dimensões grandes demais.")
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise InvalidImage(f"{field} inválida: conteúdo não é uma imagem.")

    return mime, raw
