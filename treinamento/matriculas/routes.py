"""
Rotas do Módulo de Matrículas
"""

from flask import request

from . import matriculas_bp
from . import services as matriculas_services
from treinamento.auth.permissoes import requer_login, requer_permissao, usuario_atual_id
from treinamento.core.respostas import sucesso


def _corpo_json() -> dict:
    return request.get_json(silent=True) or {}


# === PORTAL DO ALUNO ===

@matriculas_bp.route('', methods=['GET', 'OPTIONS'])
@requer_login
def minhas_matriculas():
    matriculas = matriculas_services.listar_matriculas_do_aluno(usuario_atual_id())
    return sucesso(matriculas=matriculas)


@matriculas_bp.route('', methods=['POST'])
@requer_login
def inscrever_se():
    """ O próprio aluno se inscreve em um curso/turma. """
    dados = _corpo_json()
    matricula, criada = matriculas_services.admitir_matricula({
        'aluno_id': usuario_atual_id(),
        'curso_id': dados.get('curso_id'),
        'turma_id': dados.get('turma_id'),
    }, criado_por=usuario_atual_id())
    return sucesso(duplicated=not criada, enrollment=matricula), (201 if criada else 200)


@matriculas_bp.route('/<matricula_id>/presenca', methods=['POST', 'OPTIONS'])
@requer_login
def marcar_presenca(matricula_id):
    dados = _corpo_json()
    resultado = matriculas_services.registrar_presenca(
        matricula_id,
        dados.get('aula_id'),
        usuario_atual_id(),
        palavra_chave=dados.get('palavra_chave'),
    )
    return sucesso(**resultado)


@matriculas_bp.route('/<matricula_id>/aulas/<aula_id>/concluir', methods=['POST', 'OPTIONS'])
@requer_login
def concluir_aula(matricula_id, aula_id):
    resultado = matriculas_services.concluir_aula_gravada(matricula_id, aula_id, usuario_atual_id())
    return sucesso(**resultado)


# === EQUIPE (ADMIN / PROFESSOR) ===

@matriculas_bp.route('/manual', methods=['POST', 'OPTIONS'])
@requer_permissao('enrollments', editar=True)
def matricula_manual():
    matricula, criada = matriculas_services.admitir_matricula(_corpo_json(), criado_por=usuario_atual_id())
    return sucesso(duplicated=not criada, enrollment=matricula), (201 if criada else 200)


@matriculas_bp.route('/<matricula_id>/turma', methods=['POST', 'OPTIONS'])
@requer_permissao('enrollments', editar=True)
def vincular_turma(matricula_id):
    matricula = matriculas_services.vincular_turma(matricula_id, _corpo_json().get('turma_id'))
    return sucesso(enrollment=matricula)


@matriculas_bp.route('/<matricula_id>/progresso', methods=['POST', 'OPTIONS'])
@requer_permissao('progress', editar=True)
def recalcular(matricula_id):
    return sucesso(progresso_percentual=matriculas_services.recalcular_progresso(matricula_id))
