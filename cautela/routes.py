import io

import qrcode
from flask import (
    Blueprint, current_app, g, jsonify, request, send_file, url_for
)
from sqlalchemy.exc import IntegrityError

from . import db
from .auth import login_required
from .forms import EMAIL_RE, json_body, text
from .models import Assinatura, Cautela, new_token, utcnow
from .query import (
    ASSINATURA_CAUTELA,
    ASSINATURA_DESCAUTELA,
    LOAN_SCHEMA,
    ORDEM_ANTIGA,
    ORDEM_RECENTE,
    SIGNATURE_SCHEMA,
    STATUS_CANCELADO,
    STATUS_CAUTELADO,
    STATUS_DESCAUTELADO,
    STATUS_PENDENTE,
    TIPO_PERMANENTE,
    TODOS,
    VALID_ORDENACOES,
    VALID_STATUS,
    VALID_TIPOS,
    VALID_TIPOS_ASSINATURA,
    query_records,
)
from .signatures import InvalidImage, decode_data_url

bp = Blueprint("api", __name__, url_prefix="/api")


def _error(message, status=400):
    return jsonify({"ok": False, "error": message}), status


@bp.errorhandler(404)
def _not_found(_e):
    return _error("Recurso não encontrado.", 404)


@bp.errorhandler(405)
def _method_not_allowed(_e):
    return _error("Método não permitido.", 405)


# ======================================================
#  Link / QR Code de assinatura
# ======================================================
def signing_link(cautela):
    """Link público de assinatura; None quando nenhuma assinatura está pendente."""
    if not cautela.assinatura_pendente:
        return None
    base = current_app.config.get("PUBLIC_BASE_URL")
    if base:
        return f"{base}/assinar/{cautela.uuid}"
    return url_for("api.cautela_publica", token=cautela.uuid, _external=True)


def _cautela_json(cautela):
    return cautela.to_dict(link_assinatura=signing_link(cautela))


def _query_args(default_order):
    """Lê busca/status/tipo/ordenacao da query string. Retorna (params, erro)."""
    busca = request.args.get("busca") or ""
    status = (request.args.get("status") or TODOS).strip()
    tipo = (request.args.get("tipo") or TODOS).strip()
    ordenacao = (request.args.get("ordenacao") or default_order).strip()

    if ordenacao not in VALID_ORDENACOES:
        return None, f"Ordenação inválida: {ordenacao}."
    params = {
        "search_text": busca,
        "status_filter": status,
        "type_filter": tipo,
        "sort_key": ordenacao,
    }
    return params, None


# ---------------------------
# Lista (busca / filtros / ordenação)
# ---------------------------
@bp.get("/cautelas")
@login_required
def cautelas_list():
    params, err = _query_args(ORDEM_RECENTE)
    if err:
        return _error(err)
    if params["status_filter"] != TODOS and params["status_filter"] not in VALID_STATUS:
        return _error(f"Status inválido: {params['status_filter']}.")
    if params["type_filter"] != TODOS and params["type_filter"] not in VALID_TIPOS:
        return _error(f"Tipo inválido: {params['type_filter']}.")

    snapshot = [_cautela_json(c) for c in Cautela.query.order_by(Cautela.id.asc()).all()]
    filtradas = query_records(snapshot, schema=LOAN_SCHEMA, **params)

    return jsonify({
        "ok": True,
        "total": len(snapshot),
        "count": len(filtradas),
        "cautelas": filtradas,
    })


@bp.post("/cautelas")
@login_required
def cautelas_create():
    data = json_body()
    if data is None:
        return _error("Corpo da requisição deve ser um objeto JSON.")

    material = text(data, "material")
    descricao = text(data, "descricao") or None
    tipo_material = text(data, "tipo_material", None) if data.get("tipo_material") else TIPO_PERMANENTE
    quantidade_raw = data.get("quantidade")
    responsavel_nome = text(data, "responsavel_nome")
    responsavel_email = text(data, "responsavel_email")

    if not material or not responsavel_nome or not responsavel_email:
        return _error("Preencha: Material, Nome e Email do responsável.")

    if tipo_material not in VALID_TIPOS:
        return _error("Tipo de material inválido.")

    if not EMAIL_RE.match(responsavel_email):
        return _error("Email do responsável inválido.")

    if isinstance(quantidade_raw, bool) or not isinstance(quantidade_raw, (int, str)):
        return _error("Quantidade inválida.")

    try:
        quantidade = int(str(quantidade_raw).strip())
    except ValueError:
        return _error("Quantidade inválida.")

    if quantidade <= 0:
        return _error("Quantidade deve ser maior que zero.")

    cautela = Cautela(
        material=material,
        descricao=descricao,
        tipo_material=tipo_material,
        quantidade=quantidade,
        responsavel_nome=responsavel_nome,
        responsavel_email=responsavel_email.lower(),
        status=STATUS_PENDENTE,
        assinatura_pendente=ASSINATURA_CAUTELA,
        created_by_id=g.user.id,
    )
    db.session.add(cautela)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning("falha ao criar cautela '%s'", material)
        return _error("Não foi possível criar a cautela. Tente novamente.", 409)

    current_app.logger.info("cautela %s criada por %s (%s)", cautela.id, g.user.username, material)
    payload = _cautela_json(cautela)
    return jsonify({"ok": True, "cautela": payload, "link_assinatura": payload["link_assinatura"]}), 201


# ---------------------------
# Página pública de assinatura
# ---------------------------
@bp.get("/cautelas/<token>", endpoint="cautela_publica")
def cautela_publica(token):
    cautela = Cautela.query.filter(Cautela.uuid == token).first()
    if not cautela:
        return _error("Cautela não encontrada.", 404)
    return jsonify({"ok": True, "cautela": _cautela_json(cautela)})


@bp.post("/cautelas/<int:cautela_id>/descautelar")
@login_required
def cautelas_descautelar(cautela_id):
    cautela = db.get_or_404(Cautela, cautela_id)

    if cautela.tipo_material != TIPO_PERMANENTE:
        return _error("Material consumível não é descautelado.", 409)

    if cautela.status != STATUS_CAUTELADO:
        return _error(f"Só é possível descautelar uma cautela assinada (status atual: {cautela.status}).", 409)

    # link novo: o da cautela original deixa de valer
    cautela.uuid = new_token()
    cautela.assinatura_pendente = ASSINATURA_DESCAUTELA
    db.session.commit()

    current_app.logger.info("descautela solicitada para cautela %s por %s", cautela.id, g.user.username)
    payload = _cautela_json(cautela)
    return jsonify({"ok": True, "cautela": payload, "link_assinatura": payload["link_assinatura"]})


@bp.post("/cautelas/<int:cautela_id>/cancelar")
@login_required
def cautelas_cancelar(cautela_id):
    cautela = db.get_or_404(Cautela, cautela_id)

    if cautela.status != STATUS_PENDENTE:
        return _error(f"Só é possível cancelar uma cautela pendente (status atual: {cautela.status}).", 409)

    cautela.status = STATUS_CANCELADO
    cautela.assinatura_pendente = None
    db.session.commit()

    current_app.logger.info("cautela %s cancelada por %s", cautela.id, g.user.username)
    return jsonify({"ok": True, "cautela": _cautela_json(cautela)})


@bp.get("/cautelas/<int:cautela_id>/historico")
@login_required
def cautelas_historico(cautela_id):
    cautela = db.get_or_404(Cautela, cautela_id)

    params, err = _query_args(ORDEM_ANTIGA)
    if err:
        return _error(err)
    if params["type_filter"] != TODOS and params["type_filter"] not in VALID_TIPOS_ASSINATURA:
        return _error(f"Tipo de assinatura inválido: {params['type_filter']}.")

    eventos = [a.to_dict() for a in cautela.assinaturas]
    assinaturas = query_records(eventos, schema=SIGNATURE_SCHEMA, **params)

    return jsonify({
        "ok": True,
        "cautela": _cautela_json(cautela),
        "assinaturas": assinaturas,
        "total_assinaturas": len(eventos),
    })


@bp.get("/cautelas/<int:cautela_id>/qrcode")
@login_required
def cautelas_qrcode(cautela_id):
    cautela = db.get_or_404(Cautela, cautela_id)

    link = signing_link(cautela)
    if not link:
        return _error("Nenhuma assinatura pendente para esta cautela.", 409)

    # nível H: o QR continua legível impresso/amassado
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=4,
    )
    qr.add_data(link)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img_io = io.BytesIO()
    img.save(img_io, "PNG")
    img_io.seek(0)

    return send_file(img_io, mimetype="image/png", download_name=f"cautela_{cautela.id}.png")


# ---------------------------
# Assinatura (pública, via link/QR)
# ---------------------------
@bp.post("/assinaturas/<token>")
def assinaturas_create(token):
    cautela = Cautela.query.filter(Cautela.uuid == token).first()
    if not cautela:
        return _error("Cautela não encontrada.", 404)

    tipo = cautela.assinatura_pendente
    if not tipo:
        return _error("Esta cautela já foi assinada ou cancelada.", 409)

    data = json_body()
    if data is None:
        return _error("Corpo da requisição deve ser um objeto JSON.")

    try:
        decode_data_url(data.get("assinatura_base64"), field="Assinatura")
        decode_data_url(data.get("foto_base64"), field="Foto")
    except InvalidImage as e:
        return _error(str(e))

    nome = text(data, "nome") or cautela.responsavel_nome
    cargo = text(data, "cargo") or None

    # reserva o link de forma atômica: só um request consegue zerar a pendência
    claimed = (
        Cautela.query
        .filter(
            Cautela.id == cautela.id,
            Cautela.uuid == token,
            Cautela.assinatura_pendente == tipo,
        )
        .update({"assinatura_pendente": None}, synchronize_session=False)
    )
    if not claimed:
        db.session.rollback()
        current_app.logger.warning("assinatura concorrente recusada na cautela %s", cautela.id)
        return _error("Esta cautela já foi assinada ou cancelada.", 409)

    agora = utcnow()
    assinatura = Assinatura(
        cautela=cautela,
        tipo_assinatura=tipo,
        nome=nome,
        cargo=cargo,
        assinatura_base64=data["assinatura_base64"].strip(),
        foto_base64=data["foto_base64"].strip(),
        ip=request.remote_addr,
        data_assinatura=agora,
    )
    db.session.add(assinatura)

    if tipo == ASSINATURA_CAUTELA:
        cautela.status = STATUS_CAUTELADO
        cautela.data_retirada = agora
    else:
        cautela.status = STATUS_DESCAUTELADO
        cautela.data_devolucao = agora
    cautela.assinatura_pendente = None

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning("falha ao gravar assinatura da cautela %s", cautela.id)
        return _error("Erro ao salvar assinatura. Tente novamente.", 409)

    current_app.logger.info("cautela %s assinada (%s) por %s", cautela.id, tipo, nome)
    return jsonify({
        "ok": True,
        "assinatura": assinatura.to_dict(),
        "cautela": _cautela_json(cautela),
    }), 201
