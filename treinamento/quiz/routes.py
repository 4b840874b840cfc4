"""
Rotas do Módulo de Quizzes (visão do aluno)
"""

from flask import request

from . import quiz_bp
from . import services as quiz_services
from treinamento.auth.permissoes import requer_login, usuario_atual_id
from treinamento.core.erros import ErroValidacao
from treinamento.core.respostas import sucesso


@quiz_bp.route('', methods=['GET', 'OPTIONS'])
@requer_login
def listar():
    curso_id = request.args.get('curso_id')
    if not curso_id:
        raise ErroValidacao("Informe o curso_id.")
    quizzes = quiz_services.listar_quizzes_visiveis(usuario_atual_id(), curso_id, request.args.get('aula_id'))
    return sucesso(quizzes=quizzes)


@quiz_bp.route('/<quiz_id>/respostas', methods=['POST', 'OPTIONS'])
@requer_login
def responder(quiz_id):
    dados = request.get_json(silent=True) or {}
    registro = quiz_services.registrar_resposta(
        usuario_atual_id(), quiz_id, dados.get('indice_pergunta'), dados.get('resposta'),
    )
    return sucesso(correta=registro['correta'])


@quiz_bp.route('/<quiz_id>/resumo', methods=['GET', 'OPTIONS'])
@requer_login
def resumo(quiz_id):
    return sucesso(resumo=quiz_services.resumo_quiz(usuario_atual_id(), quiz_id))
