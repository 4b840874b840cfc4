"""
Rotas do Módulo Admin

Todas as rotas exigem um administrador; a checagem é refeita a cada
requisição (com o cache curto de `eh_admin`).
"""

from flask import request

from . import admin_bp
from . import services as admin_services
from treinamento.auth.permissoes import (
    permissao_modulo,
    requer_admin,
    requer_login,
    salvar_permissoes,
    usuario_atual_id,
)
from treinamento.core.constants import MODULOS_SISTEMA
from treinamento.core.erros import ErroValidacao
from treinamento.core.respostas import sucesso
from treinamento.unidades import services as unidades_services


@admin_bp.before_request
@requer_login
@requer_admin
def restringir_acesso():
    """ Nada a fazer além das checagens dos decorators. """


def _corpo_json() -> dict:
    return request.get_json(silent=True) or {}


# === PERMISSÕES DE PROFESSORES ===

@admin_bp.route('/professores/<professor_id>/permissoes', methods=['GET'])
def ver_permissoes(professor_id):
    permissoes = {}
    for modulo in MODULOS_SISTEMA:
        permissao = permissao_modulo(professor_id, modulo)
        permissoes[modulo] = {
            'pode_ver': permissao.pode_ver,
            'pode_editar': permissao.pode_editar,
            'campos_habilitados': dict(permissao.campos_habilitados),
        }
    return sucesso(permissoes=permissoes, modulos=MODULOS_SISTEMA)


@admin_bp.route('/professores/<professor_id>/permissoes', methods=['PUT', 'POST', 'OPTIONS'])
def gravar_permissoes(professor_id):
    permissoes = _corpo_json().get('permissoes')
    if not isinstance(permissoes, list):
        raise ErroValidacao("Envie 'permissoes' como uma lista.")
    return sucesso(permissoes=salvar_permissoes(professor_id, permissoes))


# === COMUNICAÇÃO ===

@admin_bp.route('/whatsapp/disparo', methods=['POST', 'OPTIONS'])
def disparo_whatsapp():
    dados = _corpo_json()
    if not dados.get('curso_id'):
        raise ErroValidacao("Campos obrigatórios: curso_id e mensagem.")
    resultado = admin_services.disparar_mensagem(
        dados['curso_id'],
        dados.get('mensagem'),
        matricula_ids=dados.get('matricula_ids') or None,
        criado_por=usuario_atual_id(),
    )
    return sucesso(**resultado)


# === UNIDADES, FRANQUEADOS E SENHAS ===

@admin_bp.route('/unidades/importar', methods=['POST', 'OPTIONS'])
def importar_unidades():
    registros = _corpo_json().get('unidades')
    if not isinstance(registros, list):
        raise ErroValidacao("Envie 'unidades' como uma lista.")
    return sucesso(**unidades_services.importar_unidades(registros))


@admin_bp.route('/franqueados/lote', methods=['POST', 'OPTIONS'])
def franqueados_em_lote():
    # Única resposta que contém as senhas temporárias
    return sucesso(**unidades_services.criar_franqueados_em_lote())


@admin_bp.route('/usuarios/<usuario_id>/senha', methods=['POST', 'OPTIONS'])
def redefinir_senha(usuario_id):
    return sucesso(**unidades_services.redefinir_senha(usuario_id))
