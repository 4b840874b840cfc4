from unittest.mock import MagicMock, patch

import pytest

import dados
from treinamento.admin import services as admin_services
from treinamento.core.constants import (
    COLECAO_DISPAROS_WHATSAPP,
    COLECAO_MATRICULAS,
    COLECAO_PERMISSOES_PROFESSOR,
)
from treinamento.core.erros import ErroDependenciaExterna, ErroValidacao
from treinamento.core.fila import FilaLimitada


def test_health_check(client):
    resposta = client.get('/health')
    assert resposta.status_code == 200
    assert b"no ar" in resposta.data


def test_preflight_responde_antes_da_autenticacao(client, db):
    resposta = client.options('/admin/whatsapp/disparo')

    assert resposta.status_code == 204
    assert resposta.headers['Access-Control-Allow-Origin'] == '*'
    assert 'x-webhook-secret' in resposta.headers['Access-Control-Allow-Headers']


def test_rota_protegida_sem_sessao(client, db):
    resposta = client.get('/matriculas')

    assert resposta.status_code == 401
    assert resposta.get_json()['success'] is False
    assert resposta.headers['Access-Control-Allow-Origin'] == '*'


def test_admin_exige_administrador(client, db, login):
    dados.usuario(db, 'aluno1', 'aluno@exemplo.com')
    login('aluno1')

    resposta = client.post('/admin/whatsapp/disparo', json={'curso_id': 'curso1', 'mensagem': 'Oi'})
    assert resposta.status_code == 403


def test_turmas_respeitam_permissao_do_professor(client, db, login):
    dados.usuario(db, 'prof1', 'prof@exemplo.com', tipo='Professor')
    dados.turma(db, 't1')
    login('prof1')

    assert client.get('/turmas').status_code == 403

    db.semear(COLECAO_PERMISSOES_PROFESSOR, 'prof1_turmas', {'pode_ver': True, 'pode_editar': False})
    resposta = client.get('/turmas')
    assert resposta.status_code == 200
    assert [t['id'] for t in resposta.get_json()['turmas']] == ['t1']
    assert client.post('/turmas/t1/encerrar').status_code == 403


@patch('treinamento.core.cep.requests.get')
def test_consulta_de_cep(mock_get, client, db):
    mock_get.return_value = MagicMock(ok=True, status_code=200, json=MagicMock(return_value={
        'cep': '01001-000', 'logradouro': 'Praça da Sé', 'localidade': 'São Paulo', 'uf': 'SP',
    }))

    resposta = client.post('/api/cep', json={'cep': '01001-000'})

    assert resposta.status_code == 200
    assert resposta.get_json()['endereco']['localidade'] == 'São Paulo'


# === DISPARO DE WHATSAPP ===

@pytest.fixture
def turma_com_telefones(db):
    dados.curso(db)
    db.semear(COLECAO_MATRICULAS, 'm1', {'curso_id': 'curso1', 'aluno_nome': 'Ana', 'aluno_telefone': '11 91111-1111'})
    db.semear(COLECAO_MATRICULAS, 'm2', {'curso_id': 'curso1', 'aluno_nome': 'Bia', 'aluno_telefone': None})
    db.semear(COLECAO_MATRICULAS, 'm3', {'curso_id': 'curso1', 'aluno_nome': 'Caio', 'aluno_telefone': '11 93333-3333'})
    db.semear(COLECAO_MATRICULAS, 'm4', {'curso_id': 'outro', 'aluno_telefone': '11 94444-4444'})


def _falha_para(telefone_com_erro):
    def enviar(telefone, mensagem):
        if telefone == telefone_com_erro:
            raise ErroDependenciaExterna("WhatsApp retornou erro 500.")
        return {'messageId': telefone}
    return enviar


def test_disparo_parcial(app, db, turma_com_telefones):
    with patch('treinamento.admin.services.whatsapp.enviar_texto', side_effect=_falha_para('5511933333333')) as mock_envio:
        resultado = admin_services.disparar_mensagem('curso1', 'Aula amanhã às 19h', criado_por='admin1',
                                                     fila=FilaLimitada())

    assert mock_envio.call_count == 2
    assert resultado['status'] == 'parcial'
    assert resultado['resumo'] == {'total': 3, 'success': 1, 'skipped': 1, 'error': 1}
    assert [r['matricula_id'] for r in resultado['resultados']] == ['m1', 'm2', 'm3']

    registro = db.ler(COLECAO_DISPAROS_WHATSAPP, resultado['disparo_id'])
    assert registro['destinatarios'] == 2
    assert registro['entregues'] == 1
    assert registro['falhas'] == 1
    assert registro['criado_por'] == 'admin1'


def test_disparo_para_matriculas_escolhidas(app, db, turma_com_telefones):
    with patch('treinamento.admin.services.whatsapp.enviar_texto', return_value={}) as mock_envio:
        resultado = admin_services.disparar_mensagem('curso1', 'Oi', matricula_ids=['m1'], fila=FilaLimitada())

    assert resultado['status'] == 'enviado'
    mock_envio.assert_called_once_with('5511911111111', 'Oi')


def test_disparo_sem_mensagem_ou_sem_gateway(app, db, turma_com_telefones):
    with pytest.raises(ErroValidacao):
        admin_services.disparar_mensagem('curso1', '  ')

    app.config['ZAPI_INSTANCE_ID'] = None
    with pytest.raises(ErroDependenciaExterna):
        admin_services.disparar_mensagem('curso1', 'Oi')
    assert db.todos(COLECAO_DISPAROS_WHATSAPP) == {}


def test_disparo_pela_rota(client, db, login, turma_com_telefones):
    dados.admin(db)
    login('admin1')

    with patch('treinamento.admin.services.whatsapp.enviar_texto', side_effect=_falha_para('5511911111111')):
        resposta = client.post('/admin/whatsapp/disparo', json={'curso_id': 'curso1', 'mensagem': 'Oi'})

    corpo = resposta.get_json()
    assert resposta.status_code == 200
    assert corpo['status'] == 'parcial'
    assert corpo['resumo']['error'] == 1


@patch('treinamento.core.whatsapp.requests.post')
def test_disparo_concorrente_le_a_config_nas_threads(mock_post, app, db, turma_com_telefones):
    mock_post.return_value = MagicMock(ok=True, status_code=200, content=b'{}', json=MagicMock(return_value={}))

    resultado = admin_services.disparar_mensagem('curso1', 'Oi', fila=FilaLimitada(max_concorrencia=2))

    assert resultado['resumo'] == {'total': 3, 'success': 2, 'skipped': 1, 'error': 0}
    assert resultado['status'] == 'enviado'
    assert mock_post.call_count == 2
    urls = {c.args[0] for c in mock_post.call_args_list}
    assert urls == {'https://api.z-api.io/instances/instancia/token/token/send-text'}
