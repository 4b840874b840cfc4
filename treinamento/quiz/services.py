"""
Camada de Serviço (Service Layer) dos Quizzes

Um quiz pertence a um curso e pode ser restrito a uma aula e/ou a uma
turma. Regra de visibilidade para o aluno:
- sem matrícula no curso, nenhum quiz do curso é visível;
- quiz sem turma é visível a qualquer matriculado no curso;
- quiz com turma é visível apenas a quem está matriculado nessa turma.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from treinamento.core import database
from treinamento.core.constants import (
    COLECAO_QUIZZES,
    COLECAO_RESPOSTAS_QUIZ,
    QUIZ_ATIVO,
)
from treinamento.core.erros import ErroAutorizacao, ErroNaoEncontrado, ErroValidacao
from treinamento.core.logger import get_logger
from treinamento.matriculas.services import listar_matriculas_do_aluno

logger = get_logger(__name__)

TIPO_MULTIPLA_ESCOLHA = 'multipla_escolha'


def quiz_visivel(quiz: dict, turmas_do_aluno: Iterable[str]) -> bool:
    """
    Regra pura. `turmas_do_aluno` são as turmas das matrículas do aluno no
    curso do quiz; matrícula sem turma entra como None.
    """
    turma_do_quiz = quiz.get('turma_id')
    if turma_do_quiz is None:
        return True
    return turma_do_quiz in set(turmas_do_aluno)


def _turmas_no_curso(usuario_id: str, curso_id: str) -> Optional[List[Optional[str]]]:
    """Turmas do aluno no curso, ou None se ele não está matriculado."""
    matriculas = [m for m in listar_matriculas_do_aluno(usuario_id) if m.get('curso_id') == curso_id]
    if not matriculas:
        return None
    return [m.get('turma_id') for m in matriculas]


def _sem_gabarito(quiz: dict) -> dict:
    publico = dict(quiz)
    publico['perguntas'] = [
        {k: v for k, v in pergunta.items() if k != 'resposta_correta'}
        for pergunta in quiz.get('perguntas', [])
    ]
    return publico


def listar_quizzes_visiveis(usuario_id: str, curso_id: str, aula_id: Optional[str] = None) -> List[dict]:
    turmas = _turmas_no_curso(usuario_id, curso_id)
    if turmas is None:
        return []

    consulta = (
        database.get_db().collection(COLECAO_QUIZZES)
        .where('curso_id', '==', curso_id)
        .where('status', '==', QUIZ_ATIVO)
    )
    if aula_id:
        consulta = consulta.where('aula_id', '==', aula_id)

    quizzes = [database.snapshot_para_dict(doc) for doc in consulta.stream()]
    return [_sem_gabarito(q) for q in quizzes if quiz_visivel(q, turmas)]


def obter_quiz_visivel(usuario_id: str, quiz_id: str) -> dict:
    snapshot = database.get_db().collection(COLECAO_QUIZZES).document(quiz_id).get()
    quiz = database.snapshot_para_dict(snapshot)
    if not quiz:
        raise ErroNaoEncontrado(f"Quiz '{quiz_id}' não encontrado.")

    turmas = _turmas_no_curso(usuario_id, quiz.get('curso_id'))
    if quiz.get('status') != QUIZ_ATIVO or turmas is None or not quiz_visivel(quiz, turmas):
        raise ErroAutorizacao("Quiz não disponível para este aluno.")
    return quiz


def registrar_resposta(usuario_id: str, quiz_id: str, indice_pergunta: int, resposta: str) -> dict:
    """
    Grava a resposta de uma pergunta. Responder de novo substitui a anterior.
    Perguntas dissertativas ficam com `correta = None` (correção manual).
    """
    quiz = obter_quiz_visivel(usuario_id, quiz_id)
    perguntas = quiz.get('perguntas', [])
    try:
        indice = int(indice_pergunta)
    except (TypeError, ValueError):
        raise ErroValidacao("Índice de pergunta inválido.")
    if not 0 <= indice < len(perguntas):
        raise ErroValidacao("Índice de pergunta inválido.")
    if resposta is None or str(resposta).strip() == '':
        raise ErroValidacao("Resposta vazia.")

    pergunta = perguntas[indice]
    resposta = str(resposta).strip()
    correta = None
    if pergunta.get('tipo', TIPO_MULTIPLA_ESCOLHA) == TIPO_MULTIPLA_ESCOLHA:
        correta = resposta.upper() == str(pergunta.get('resposta_correta', '')).strip().upper()

    registro = {
        'quiz_id': quiz_id,
        'usuario_id': usuario_id,
        'curso_id': quiz.get('curso_id'),
        'indice_pergunta': indice,
        'resposta': resposta,
        'correta': correta,
        'respondido_em': datetime.now(timezone.utc),
    }
    database.get_db().collection(COLECAO_RESPOSTAS_QUIZ).document(
        f"{quiz_id}_{usuario_id}_{indice}"
    ).set(registro)
    logger.info(f"Resposta registrada: quiz {quiz_id}, usuário {usuario_id}, pergunta {indice}")
    return registro


def resumo_quiz(usuario_id: str, quiz_id: str) -> dict:
    quiz = obter_quiz_visivel(usuario_id, quiz_id)
    respostas = [
        doc.to_dict() for doc in
        database.get_db().collection(COLECAO_RESPOSTAS_QUIZ)
        .where('quiz_id', '==', quiz_id)
        .where('usuario_id', '==', usuario_id)
        .stream()
    ]
    return {
        'quiz_id': quiz_id,
        'total_perguntas': len(quiz.get('perguntas', [])),
        'respondidas': len(respostas),
        'corretas': sum(1 for r in respostas if r.get('correta') is True),
        'aguardando_correcao': sum(1 for r in respostas if r.get('correta') is None),
    }
