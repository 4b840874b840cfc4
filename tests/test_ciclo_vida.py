from datetime import timedelta
from unittest.mock import patch

import pytest

import dados
from dados import AGORA
from treinamento.core.constants import COLECAO_PERMISSOES_PROFESSOR, COLECAO_TURMAS
from treinamento.core.erros import ErroValidacao
from treinamento.turmas import services as turmas_services
from treinamento.turmas.ciclo_vida import (
    StatusTurma,
    aceita_inscricoes,
    aplicar_transicao_condicional,
    avancar_turmas_abertura,
    avancar_turmas_encerramento,
    executar_ciclo,
    validar_transicao,
)

ONTEM = AGORA - timedelta(days=1)
AMANHA = AGORA + timedelta(days=1)


def _status(db, turma_id):
    return db.ler(COLECAO_TURMAS, turma_id)['status']


# === MÁQUINA DE ESTADOS ===

def test_transicoes_validas_e_invalidas():
    validar_transicao('agendada', 'inscricoes_abertas')
    validar_transicao('inscricoes_abertas', 'em_andamento')
    validar_transicao('em_andamento', 'encerrada')

    with pytest.raises(ErroValidacao):
        validar_transicao('agendada', 'encerrada')
    with pytest.raises(ErroValidacao):
        validar_transicao('em_andamento', 'inscricoes_abertas')


def test_estado_terminal_so_sai_forcado():
    with pytest.raises(ErroValidacao):
        validar_transicao('encerrada', 'em_andamento')
    with pytest.raises(ErroValidacao):
        validar_transicao('cancelada', 'agendada')
    validar_transicao('encerrada', 'em_andamento', forcar=True)


def test_mesmo_status_e_status_desconhecido():
    with pytest.raises(ErroValidacao):
        validar_transicao('em_andamento', 'em_andamento', forcar=True)
    with pytest.raises(ErroValidacao):
        validar_transicao('agendada', 'arquivada')


def test_status_que_aceitam_inscricao():
    assert aceita_inscricoes('inscricoes_abertas')
    assert aceita_inscricoes('em_andamento')
    assert not aceita_inscricoes('agendada')
    assert not aceita_inscricoes('inscricoes_encerradas')
    assert not aceita_inscricoes('encerrada')
    assert not aceita_inscricoes('qualquer')


# === AVANÇO AUTOMÁTICO ===

def test_abertura_de_inscricoes(app, db):
    dados.turma(db, 't1', status='agendada', abertura_inscricoes_em=ONTEM, inicio_em=AMANHA)
    dados.turma(db, 't2', status='agendada', abertura_inscricoes_em=AMANHA, inicio_em=AMANHA)

    resultado = avancar_turmas_abertura(AGORA)

    assert _status(db, 't1') == 'inscricoes_abertas'
    assert _status(db, 't2') == 'agendada'
    assert resultado.alteradas == [('t1', 'agendada', 'inscricoes_abertas')]


def test_inicio_da_turma(app, db):
    dados.turma(db, 't1', status='inscricoes_abertas', inicio_em=ONTEM)
    dados.turma(db, 't2', status='agendada', inicio_em=ONTEM)
    dados.turma(db, 't3', status='inscricoes_encerradas', inicio_em=ONTEM)

    avancar_turmas_abertura(AGORA)

    assert _status(db, 't1') == 'em_andamento'
    assert _status(db, 't2') == 'em_andamento'
    assert _status(db, 't3') == 'em_andamento'


def test_encerramento_pelo_prazo(app, db):
    dados.turma(db, 't1', status='em_andamento', prazo_conclusao=ONTEM)
    dados.turma(db, 't2', status='inscricoes_abertas', prazo_conclusao=ONTEM)
    dados.turma(db, 't3', status='em_andamento', prazo_conclusao=AMANHA)
    dados.turma(db, 't4', status='cancelada', prazo_conclusao=ONTEM)
    dados.turma(db, 't5', status='agendada', prazo_conclusao=ONTEM)

    resultado = avancar_turmas_encerramento(AGORA)

    assert _status(db, 't1') == 'encerrada'
    assert _status(db, 't2') == 'encerrada'
    assert _status(db, 't3') == 'em_andamento'
    assert _status(db, 't4') == 'cancelada'
    assert _status(db, 't5') == 'agendada'
    assert len(resultado.alteradas) == 2


def test_ciclo_repetido_nao_altera_nada(app, db):
    dados.turma(db, 't1', status='agendada', abertura_inscricoes_em=ONTEM, inicio_em=ONTEM)
    dados.turma(db, 't2', status='em_andamento', prazo_conclusao=ONTEM)

    primeiro = executar_ciclo(AGORA)
    antes = db.todos(COLECAO_TURMAS)
    segundo = executar_ciclo(AGORA)

    assert primeiro['success'] and segundo['success']
    assert primeiro['abertura']['alteradas']
    assert segundo['abertura']['alteradas'] == []
    assert segundo['encerramento']['alteradas'] == []
    assert db.todos(COLECAO_TURMAS) == antes


def test_transicao_concorrente_e_ignorada(app, db):
    dados.turma(db, 't1', status='agendada', abertura_inscricoes_em=ONTEM)
    referencia = db.collection(COLECAO_TURMAS).document('t1')
    snapshot = referencia.get()

    # Outro processo aplica a mesma transição depois da nossa leitura
    assert aplicar_transicao_condicional(referencia.get(), StatusTurma.INSCRICOES_ABERTAS, AGORA)
    assert not aplicar_transicao_condicional(snapshot, StatusTurma.INSCRICOES_ABERTAS, AGORA)

    turma = db.ler(COLECAO_TURMAS, 't1')
    assert turma['status'] == 'inscricoes_abertas'
    assert turma['status_anterior'] == 'agendada'


def test_ciclo_nunca_levanta_excecao(app, db):
    dados.turma(db, 't1', status='em_andamento', prazo_conclusao=ONTEM)

    with patch('treinamento.turmas.ciclo_vida.avancar_turmas_abertura', side_effect=RuntimeError("Firestore fora")):
        resumo = executar_ciclo(AGORA)

    assert resumo['success'] is False
    assert 'Firestore fora' in resumo['abertura']['erro']
    assert resumo['encerramento']['alteradas'][0]['turma_id'] == 't1'
    assert _status(db, 't1') == 'encerrada'


# === OPERAÇÕES MANUAIS ===

def test_criar_turma_nasce_agendada(app, db):
    dados.curso(db)
    turma = turmas_services.criar_turma({
        'curso_id': 'curso1',
        'responsavel_id': 'prof1',
        'prazo_conclusao': '2025-06-30T23:59:00Z',
        'capacidade': '20',
    }, criado_por='admin1')

    assert turma['status'] == 'agendada'
    assert turma['capacidade'] == 20
    assert db.ler(COLECAO_TURMAS, turma['id'])['curso_id'] == 'curso1'


def test_criar_turma_validacoes(app, db):
    with pytest.raises(ErroValidacao):
        turmas_services.criar_turma({'curso_id': 'curso1'})

    dados.curso(db)
    with pytest.raises(ErroValidacao):
        turmas_services.criar_turma({
            'curso_id': 'curso1', 'responsavel_id': 'p',
            'inicio_em': '2025-06-30T00:00:00Z', 'prazo_conclusao': '2025-06-01T00:00:00Z',
        })


def test_alterar_status_manual(app, db):
    dados.turma(db, 't1', status='em_andamento')

    turmas_services.encerrar_turma('t1', 'prof1')
    assert _status(db, 't1') == 'encerrada'

    with pytest.raises(ErroValidacao):
        turmas_services.iniciar_turma('t1', 'prof1')

    turmas_services.alterar_status('t1', 'em_andamento', 'admin1', forcar=True)
    turma = db.ler(COLECAO_TURMAS, 't1')
    assert turma['status'] == 'em_andamento'
    assert turma['alteracao_forcada'] is True


def test_forcar_pela_rota_exige_admin(client, db, login):
    dados.usuario(db, 'prof1', 'prof@exemplo.com', tipo='Professor')
    db.semear(COLECAO_PERMISSOES_PROFESSOR, 'prof1_turmas', {'pode_ver': True, 'pode_editar': True})
    dados.turma(db, 't1', status='encerrada')
    login('prof1')

    resposta = client.post('/turmas/t1/status', json={'status': 'em_andamento', 'forcar': True})
    assert resposta.status_code == 403
    assert _status(db, 't1') == 'encerrada'

    dados.admin(db)
    login('admin1')
    resposta = client.post('/turmas/t1/status', json={'status': 'em_andamento', 'forcar': True})
    assert resposta.status_code == 200
    assert resposta.get_json()['turma']['status'] == 'em_andamento'


def test_endpoint_do_ciclo_exige_segredo(client, db):
    dados.turma(db, 't1', status='em_andamento', prazo_conclusao=ONTEM)

    assert client.post('/api/turmas/ciclo').status_code == 401
    assert client.post('/api/turmas/ciclo', headers={'X-Cron-Secret': 'errado'}).status_code == 401

    resposta = client.post('/api/turmas/ciclo', headers={'X-Cron-Secret': 'segredo-cron'})
    assert resposta.status_code == 200
    assert resposta.get_json()['success'] is True
    assert _status(db, 't1') == 'encerrada'
