"""
Rotas da API Pública
"""

import hmac

from flask import current_app, redirect, request

from . import api_bp
from treinamento.certificados.services import resolver_redirecionamento
from treinamento.core.cep import buscar_cep
from treinamento.core.encurtador import encurtar_url
from treinamento.core.erros import ErroNaoAutenticado, ErroValidacao
from treinamento.core.extensions import limiter
from treinamento.core.logger import get_logger
from treinamento.core.respostas import sucesso
from treinamento.matriculas.forms import WebhookMatriculaForm
from treinamento.matriculas.services import admitir_matricula
from treinamento.turmas.ciclo_vida import executar_ciclo

logger = get_logger(__name__)


def _exigir_segredo(cabecalho: str, chave_config: str) -> None:
    """Compara o cabeçalho com o segredo configurado. Sem segredo, tudo é recusado."""
    esperado = (current_app.config.get(chave_config) or '').strip()
    recebido = (request.headers.get(cabecalho) or '').strip()
    if not esperado or not hmac.compare_digest(recebido, esperado):
        logger.warning(f"Segredo inválido em {request.path} (cabeçalho {cabecalho}, tamanho {len(recebido)})")
        raise ErroNaoAutenticado("Unauthorized")


# === WEBHOOK DE MATRÍCULA ===

@api_bp.route('/api/matriculas', methods=['POST', 'OPTIONS'])
@limiter.limit("60 per minute")
def webhook_matricula():
    """
    Entrega pelo menos uma vez: repetir a mesma chamada não duplica a matrícula.
    """
    _exigir_segredo('X-Webhook-Secret', 'WEBHOOK_SECRET')

    form = WebhookMatriculaForm()
    if not form.validate_on_submit():
        raise ErroValidacao(f"Erro de Validação: {form.errors}")

    matricula, criada = admitir_matricula(form.para_dados(), criado_por=form.created_by.data or None)
    return sucesso(duplicated=not criada, enrollment=matricula)


# === CICLO DE VIDA DAS TURMAS ===

@api_bp.route('/api/turmas/ciclo', methods=['POST', 'OPTIONS'])
def ciclo_turmas():
    _exigir_segredo('X-Cron-Secret', 'CRON_SECRET')
    return sucesso(**executar_ciclo())


# === CEP E ENCURTADOR ===

@api_bp.route('/api/cep', methods=['POST', 'OPTIONS'])
@limiter.limit("30 per minute")
def consultar_cep():
    dados = request.get_json(silent=True) or {}
    return sucesso(endereco=buscar_cep(dados.get('cep')))


@api_bp.route('/api/encurtar', methods=['POST', 'OPTIONS'])
@limiter.limit("30 per minute")
def encurtar():
    dados = request.get_json(silent=True) or {}
    return sucesso(url_curta=encurtar_url(dados.get('url')))


# === REDIRECIONAMENTO DOS LINKS CURTOS ===

@api_bp.route('/r/<slug>')
@limiter.limit("120 per minute")
def redirecionar(slug):
    return redirect(resolver_redirecionamento(slug), code=302)
