"""
Padrão de Respostas JSON dos Blueprints.

Todos os endpoints JSON respondem o preflight CORS da mesma forma,
anexam os cabeçalhos CORS e convertem erros de domínio em
{"success": false, "error": "..."} com o status HTTP do erro.
"""

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from treinamento.core.erros import ErroTreinamento
from treinamento.core.logger import get_logger

logger = get_logger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type, x-webhook-secret, x-cron-secret',
    'Access-Control-Allow-Methods': 'GET, POST, PUT, OPTIONS',
}


def configurar_blueprint_json(bp) -> None:
    """Registra preflight, cabeçalhos CORS e tratadores de erro no blueprint."""

    @bp.before_request
    def responder_preflight():
        if request.method == 'OPTIONS':
            return '', 204

    @bp.after_request
    def anexar_cors(response):
        response.headers.update(CORS_HEADERS)
        return response

    @bp.errorhandler(ErroTreinamento)
    def tratar_erro_dominio(erro):
        logger.info(f"{request.method} {request.path} -> {erro.status_http}: {erro.mensagem}")
        return jsonify(erro.para_dict()), erro.status_http

    @bp.errorhandler(HTTPException)
    def tratar_erro_http(erro):
        return jsonify({'success': False, 'error': erro.description}), erro.code

    @bp.errorhandler(Exception)
    def tratar_erro_inesperado(erro):
        logger.error(f"Erro inesperado em {request.method} {request.path}: {erro}", exc_info=True)
        return jsonify({'success': False, 'error': 'Erro interno do servidor'}), 500


def sucesso(**dados):
    return jsonify({'success': True, **dados})
