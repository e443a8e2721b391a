"""
Busca, filtro e ordenação em memória das listas de cautelas e assinaturas.

Função pura: recebe um snapshot de registros (dicts serializados ou objetos)
e devolve uma nova lista com os mesmos objetos, filtrados e ordenados.
Nunca levanta erro por campo ausente/malformado.
"""
from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone

TODOS = "todos"

STATUS_PENDENTE = "pendente"
STATUS_CAUTELADO = "cautelado"
STATUS_DESCAUTELADO = "descautelado"
STATUS_CANCELADO = "cancelado"
VALID_STATUS = {STATUS_PENDENTE, STATUS_CAUTELADO, STATUS_DESCAUTELADO, STATUS_CANCELADO}

TIPO_PERMANENTE = "permanente"
TIPO_CONSUMIVEL = "consumivel"
VALID_TIPOS = {TIPO_PERMANENTE, TIPO_CONSUMIVEL}

ASSINATURA_CAUTELA = "cautela"
ASSINATURA_DESCAUTELA = "descautela"
VALID_TIPOS_ASSINATURA = {ASSINATURA_CAUTELA, ASSINATURA_DESCAUTELA}

ORDEM_RECENTE = "recente"
ORDEM_ANTIGA = "antiga"
ORDEM_MATERIAL = "material"
ORDEM_RESPONSAVEL = "responsavel"
VALID_ORDENACOES = {ORDEM_RECENTE, ORDEM_ANTIGA, ORDEM_MATERIAL, ORDEM_RESPONSAVEL}


@dataclass(frozen=True)
class RecordSchema:
    """Quais campos de um registro alimentam busca, filtros e ordenação."""

    search_fields: tuple[str, ...]
    timestamp_field: str
    name_field: str
    responsible_field: str
    status_field: str | None = None
    type_field: str | None = None
    # campos comparados sem normalização (ex.: quantidade)
    raw_search_fields: tuple[str, ...] = ()


LOAN_SCHEMA = RecordSchema(
    search_fields=("material", "descricao", "responsavel_nome", "responsavel_email"),
    raw_search_fields=("quantidade",),
    timestamp_field="data_criacao",
    name_field="material",
    responsible_field="responsavel_nome",
    status_field="status",
    type_field="tipo_material",
)

SIGNATURE_SCHEMA = RecordSchema(
    search_fields=("nome", "cargo"),
    timestamp_field="data_assinatura",
    name_field="nome",
    responsible_field="cargo",
    type_field="tipo_assinatura",
)


def _fold(text: str) -> str:
    # minúsculas e sem acentos; espaços preservados
    text = unicodedata.normalize("NFD", text.lower())
    return "".join(ch for ch in text if not unicodedata.combining(ch))


def normalize_text(value) -> str:
    """Minúsculas, sem acentos e sem espaços nas pontas. None/vazio -> ''."""
    if value is None or value == "":
        return ""
    return _fold(str(value)).strip()


def _field(record, name: str | None):
    if record is None or not name:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _raw_text(value) -> str:
    # mesmo comportamento de String(x || '').trim(): 0 e None viram ''
    if not value:
        return ""
    return str(value).strip()


def timestamp_of(value) -> float:
    """
    Converte o campo de data em epoch (ms). Aceita datetime/date, número
    (já em ms) ou string ISO-8601. Qualquer outra coisa vale 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        return float(value) if value == value else 0.0  # NaN

    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return 0.0
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            return 0.0

    if not isinstance(value, datetime):
        return 0.0

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    try:
        return value.timestamp() * 1000.0
    except (OverflowError, OSError, ValueError):
        return 0.0


def collation_key(value) -> tuple[str, str, str]:
    """
    Chave de ordenação alfabética no estilo localeCompare: primeiro ignora
    acento e caixa, depois desempata por acento e por fim minúscula antes de
    maiúscula.
    """
    text = "" if value is None else str(value)
    return (_fold(text), text.casefold(), text.swapcase())


def _matches(record, term: str, schema: RecordSchema) -> bool:
    if record is None:
        return False
    for name in schema.search_fields:
        if term in normalize_text(_field(record, name)):
            return True
    for name in schema.raw_search_fields:
        if term in _raw_text(_field(record, name)):
            return True
    return False


def query_records(
    records,
    search_text: str | None = "",
    status_filter: str | None = TODOS,
    type_filter: str | None = TODOS,
    sort_key: str | None = ORDEM_RECENTE,
    schema: RecordSchema = LOAN_SCHEMA,
) -> list:
    """
    Aplica busca -> status -> tipo -> ordenação sobre ``records``.

    O resultado é uma lista nova contendo os mesmos objetos de entrada
    (nunca copiados nem alterados). Filtros ``"todos"``/vazios não fazem
    nada; um filtro de status num schema sem campo de status também não.
    """
    result = list(records or [])

    term = normalize_text(search_text)
    if term:
        result = [r for r in result if _matches(r, term, schema)]

    if status_filter and status_filter != TODOS and schema.status_field:
        result = [
            r for r in result
            if r is not None and _field(r, schema.status_field) == status_filter
        ]

    if type_filter and type_filter != TODOS and schema.type_field:
        result = [
            r for r in result
            if r is not None and _field(r, schema.type_field) == type_filter
        ]

    # sorted() é estável, inclusive com reverse=True
    if sort_key == ORDEM_RECENTE:
        result.sort(key=lambda r: timestamp_of(_field(r, schema.timestamp_field)), reverse=True)
    elif sort_key == ORDEM_ANTIGA:
        result.sort(key=lambda r: timestamp_of(_field(r, schema.timestamp_field)))
    elif sort_key == ORDEM_MATERIAL:
        result.sort(key=lambda r: collation_key(_field(r, schema.name_field)))
    elif sort_key == ORDEM_RESPONSAVEL:
        result.sort(key=lambda r: collation_key(_field(r, schema.responsible_field)))

    return result
