import pytest

import dados
from treinamento.core.constants import COLECAO_MATRICULAS, COLECAO_QUIZZES, COLECAO_RESPOSTAS_QUIZ
from treinamento.core.erros import ErroAutorizacao, ErroValidacao
from treinamento.quiz import services as quiz_services
from treinamento.quiz.services import quiz_visivel

PERGUNTAS = [
    {'texto': 'Qual a cor do céu?', 'opcoes': ['A) Azul', 'B) Verde'], 'resposta_correta': 'A'},
    {'texto': 'Descreva seu atendimento ideal.', 'tipo': 'dissertativa'},
]


def _quiz(db, quiz_id, turma_id=None, status='ativo', curso_id='curso1', aula_id=None):
    db.semear(COLECAO_QUIZZES, quiz_id, {
        'curso_id': curso_id, 'turma_id': turma_id, 'aula_id': aula_id,
        'status': status, 'titulo': quiz_id, 'perguntas': PERGUNTAS,
    })


def _matricular(db, aluno_id, turma_id, curso_id='curso1'):
    db.semear(COLECAO_MATRICULAS, f"{aluno_id}_{curso_id}", {
        'aluno_id': aluno_id, 'aluno_email': f"{aluno_id}@exemplo.com",
        'curso_id': curso_id, 'turma_id': turma_id,
    })


@pytest.fixture
def turma_t1(db):
    """Aluno matriculado na turma T1 e quizzes de T1, de T2 e do curso todo."""
    dados.usuario(db, 'aluno1', 'aluno1@exemplo.com')
    _matricular(db, 'aluno1', 'T1')
    _quiz(db, 'q_t1', turma_id='T1')
    _quiz(db, 'q_t2', turma_id='T2')
    _quiz(db, 'q_curso')
    return 'aluno1'


def test_regra_de_visibilidade():
    assert quiz_visivel({'turma_id': None}, [])
    assert quiz_visivel({'turma_id': 'T1'}, ['T1'])
    assert not quiz_visivel({'turma_id': 'T2'}, ['T1', None])
    assert not quiz_visivel({'turma_id': 'T1'}, [None])


def test_aluno_ve_apenas_quizzes_da_sua_turma_e_do_curso(app, db, turma_t1):
    visiveis = quiz_services.listar_quizzes_visiveis(turma_t1, 'curso1')
    assert sorted(q['id'] for q in visiveis) == ['q_curso', 'q_t1']


def test_gabarito_nao_vai_para_o_aluno(app, db, turma_t1):
    visiveis = quiz_services.listar_quizzes_visiveis(turma_t1, 'curso1')
    for quiz in visiveis:
        assert all('resposta_correta' not in p for p in quiz['perguntas'])


def test_quiz_inativo_nao_aparece(app, db, turma_t1):
    _quiz(db, 'q_rascunho', status='inativo')
    visiveis = quiz_services.listar_quizzes_visiveis(turma_t1, 'curso1')
    assert 'q_rascunho' not in [q['id'] for q in visiveis]


def test_filtro_por_aula(app, db, turma_t1):
    _quiz(db, 'q_aula', aula_id='a1')
    visiveis = quiz_services.listar_quizzes_visiveis(turma_t1, 'curso1', aula_id='a1')
    assert [q['id'] for q in visiveis] == ['q_aula']


def test_sem_matricula_nada_e_visivel(app, db, turma_t1):
    dados.usuario(db, 'visitante', 'visitante@exemplo.com')
    assert quiz_services.listar_quizzes_visiveis('visitante', 'curso1') == []
    with pytest.raises(ErroAutorizacao):
        quiz_services.obter_quiz_visivel('visitante', 'q_curso')


def test_matricula_sem_turma_ve_apenas_quizzes_do_curso(app, db):
    dados.usuario(db, 'aluno2', 'aluno2@exemplo.com')
    _matricular(db, 'aluno2', None)
    _quiz(db, 'q_t1', turma_id='T1')
    _quiz(db, 'q_curso')

    visiveis = quiz_services.listar_quizzes_visiveis('aluno2', 'curso1')
    assert [q['id'] for q in visiveis] == ['q_curso']


def test_resposta_em_quiz_de_outra_turma_e_negada(app, db, turma_t1):
    with pytest.raises(ErroAutorizacao):
        quiz_services.registrar_resposta(turma_t1, 'q_t2', 0, 'A')
    assert db.todos(COLECAO_RESPOSTAS_QUIZ) == {}


def test_correcao_automatica_e_dissertativa(app, db, turma_t1):
    certa = quiz_services.registrar_resposta(turma_t1, 'q_t1', 0, ' a ')
    dissertativa = quiz_services.registrar_resposta(turma_t1, 'q_t1', 1, 'Com atenção ao cliente')

    assert certa['correta'] is True
    assert dissertativa['correta'] is None

    errada = quiz_services.registrar_resposta(turma_t1, 'q_t1', 0, 'B')
    assert errada['correta'] is False
    # Responder de novo substitui a resposta anterior
    assert len(db.todos(COLECAO_RESPOSTAS_QUIZ)) == 2


def test_indice_e_resposta_validados(app, db, turma_t1):
    with pytest.raises(ErroValidacao):
        quiz_services.registrar_resposta(turma_t1, 'q_t1', 5, 'A')
    with pytest.raises(ErroValidacao):
        quiz_services.registrar_resposta(turma_t1, 'q_t1', 'primeira', 'A')
    with pytest.raises(ErroValidacao):
        quiz_services.registrar_resposta(turma_t1, 'q_t1', 0, '   ')


def test_resumo(app, db, turma_t1):
    quiz_services.registrar_resposta(turma_t1, 'q_t1', 0, 'A')
    quiz_services.registrar_resposta(turma_t1, 'q_t1', 1, 'texto livre')

    assert quiz_services.resumo_quiz(turma_t1, 'q_t1') == {
        'quiz_id': 'q_t1',
        'total_perguntas': 2,
        'respondidas': 2,
        'corretas': 1,
        'aguardando_correcao': 1,
    }


def test_rotas_do_aluno(client, db, login, turma_t1):
    login(turma_t1)

    assert client.get('/quizzes').status_code == 400

    lista = client.get('/quizzes?curso_id=curso1').get_json()['quizzes']
    assert len(lista) == 2

    resposta = client.post('/quizzes/q_t1/respostas', json={'indice_pergunta': 0, 'resposta': 'A'})
    assert resposta.get_json() == {'success': True, 'correta': True}

    assert client.post('/quizzes/q_t2/respostas', json={'indice_pergunta': 0, 'resposta': 'A'}).status_code == 403
