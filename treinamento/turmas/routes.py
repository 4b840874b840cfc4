"""
Rotas do Módulo de Turmas

Listagem, cadastro e mudanças manuais de status. Forçar uma transição
(sair de estado terminal) é exclusivo de administradores.
"""

from flask import request

from . import turmas_bp
from . import services as turmas_services
from treinamento.auth.permissoes import eh_admin, requer_permissao, usuario_atual_id
from treinamento.core.erros import ErroAutorizacao, ErroValidacao
from treinamento.core.respostas import sucesso


@turmas_bp.route('', methods=['GET', 'OPTIONS'])
@requer_permissao('turmas')
def listar():
    turmas = turmas_services.listar_turmas(
        curso_id=request.args.get('curso_id'),
        status=request.args.get('status'),
    )
    return sucesso(turmas=turmas)


@turmas_bp.route('', methods=['POST'])
@requer_permissao('turmas', editar=True)
def criar():
    turma = turmas_services.criar_turma(request.get_json(silent=True) or {}, criado_por=usuario_atual_id())
    return sucesso(turma=turma), 201


@turmas_bp.route('/<turma_id>', methods=['GET', 'OPTIONS'])
@requer_permissao('turmas')
def detalhe(turma_id):
    return sucesso(turma=turmas_services.obter_turma(turma_id))


@turmas_bp.route('/<turma_id>/status', methods=['POST', 'OPTIONS'])
@requer_permissao('turmas', editar=True)
def alterar_status(turma_id):
    dados = request.get_json(silent=True) or {}
    destino = dados.get('status')
    if not destino:
        raise ErroValidacao("Informe o status de destino.")

    forcar = bool(dados.get('forcar', False))
    if forcar and not eh_admin(usuario_atual_id()):
        raise ErroAutorizacao("Somente administradores podem forçar uma transição.")

    turma = turmas_services.alterar_status(turma_id, destino, usuario_atual_id(), forcar=forcar)
    return sucesso(turma=turma)


@turmas_bp.route('/<turma_id>/iniciar', methods=['POST', 'OPTIONS'])
@requer_permissao('turmas', editar=True)
def iniciar(turma_id):
    return sucesso(turma=turmas_services.iniciar_turma(turma_id, usuario_atual_id()))


@turmas_bp.route('/<turma_id>/encerrar', methods=['POST', 'OPTIONS'])
@requer_permissao('turmas', editar=True)
def encerrar(turma_id):
    return sucesso(turma=turmas_services.encerrar_turma(turma_id, usuario_atual_id()))


@turmas_bp.route('/<turma_id>/cancelar', methods=['POST', 'OPTIONS'])
@requer_permissao('turmas', editar=True)
def cancelar(turma_id):
    return sucesso(turma=turmas_services.cancelar_turma(turma_id, usuario_atual_id()))
