"""
Rotas do Módulo de Unidades
"""

from flask import request

from . import unidades_bp
from . import services as unidades_services
from treinamento.auth import services as auth_services
from treinamento.auth.permissoes import eh_admin, requer_login, usuario_atual_id
from treinamento.core.constants import PAPEL_FRANQUEADO
from treinamento.core.erros import ErroAutorizacao
from treinamento.core.extensions import limiter
from treinamento.core.respostas import sucesso


@unidades_bp.route('/colaboradores', methods=['POST', 'OPTIONS'])
@limiter.limit("5 per minute")
def registrar_colaborador():
    """ Cadastro público: o colaborador fica pendente de aprovação. """
    usuario = unidades_services.registrar_colaborador(request.get_json(silent=True) or {})
    return sucesso(usuario={k: usuario.get(k) for k in ('id', 'nome', 'email', 'unidade_codigo', 'status_aprovacao')}), 201


@unidades_bp.route('/aprovacoes', methods=['GET', 'OPTIONS'])
@requer_login
def aprovacoes_pendentes():
    usuario_id = usuario_atual_id()
    if eh_admin(usuario_id):
        unidade_codigo = request.args.get('unidade_codigo')
    else:
        usuario = auth_services.obter_usuario(usuario_id) or {}
        if usuario.get('papel') != PAPEL_FRANQUEADO:
            raise ErroAutorizacao("Apenas franqueados e administradores veem aprovações.")
        unidade_codigo = usuario.get('unidade_codigo')
        if not unidade_codigo:
            raise ErroAutorizacao("Franqueado sem unidade vinculada.")

    return sucesso(pendentes=unidades_services.listar_aprovacoes_pendentes(unidade_codigo))


@unidades_bp.route('/colaboradores/<colaborador_id>/aprovacao', methods=['POST', 'OPTIONS'])
@requer_login
def aprovar(colaborador_id):
    dados = request.get_json(silent=True) or {}
    colaborador = unidades_services.aprovar_colaborador(
        usuario_atual_id(), colaborador_id, bool(dados.get('aprovado', False)),
    )
    return sucesso(status_aprovacao=colaborador['status_aprovacao'])
