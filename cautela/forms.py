"""Leitura defensiva do corpo JSON das requisições."""
import re

from flask import request

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def json_body():
    """
    Corpo JSON como dict. Corpo ausente/inválido vira ``{}`` (a validação de
    campos responde 400); um JSON que não é objeto retorna None.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def text(data, key, default=""):
    """Campo de texto sem espaços nas pontas; qualquer valor que não seja string vale ``default``."""
    value = data.get(key)
    if not isinstance(value, str):
        return default
    return value.strip()
