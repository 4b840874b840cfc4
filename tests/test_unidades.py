from unittest.mock import patch

import pytest
from werkzeug.security import check_password_hash

import dados
from treinamento.auth import services as auth_services
from treinamento.core.constants import COLECAO_CREDENCIAIS, COLECAO_UNIDADES, COLECAO_USUARIOS
from treinamento.core.erros import (
    ErroAutorizacao,
    ErroDependenciaExterna,
    ErroValidacao,
)
from treinamento.core.fila import FilaLimitada
from treinamento.unidades import services as unidades_services


def _usuario_por_email(db, email):
    for usuario_id, usuario in db.todos(COLECAO_USUARIOS).items():
        if usuario['email'] == email:
            return usuario_id, usuario
    return None, None


# === UNIDADES DA MATRIZ ===

def test_upsert_cria_e_atualiza(app, db):
    unidade, criada = unidades_services.upsert_unidade_da_matriz({
        'codigo_grupo': 101, 'grupo': 'Centro', 'email': ' Centro@Franquia.com ', 'telefone': '(11) 98888-7777',
    })
    assert criada is True
    assert unidade['codigo'] == '101'
    assert unidade['email'] == 'centro@franquia.com'
    assert unidade['telefone'] == '5511988887777'

    db.collection(COLECAO_UNIDADES).document('101').update({'observacao': 'mantida'})
    _, criada = unidades_services.upsert_unidade_da_matriz({'codigo': '101', 'nome': 'Centro Novo', 'fase': 'implantacao'})

    gravada = db.ler(COLECAO_UNIDADES, '101')
    assert criada is False
    assert gravada['nome'] == 'Centro Novo'
    assert gravada['fase'] == 'implantacao'
    assert gravada['observacao'] == 'mantida'


def test_upsert_validacoes(app, db):
    with pytest.raises(ErroValidacao):
        unidades_services.upsert_unidade_da_matriz({'nome': 'Sem código'})
    with pytest.raises(ErroValidacao):
        unidades_services.upsert_unidade_da_matriz({'codigo': '1', 'fase': 'extinta'})


def test_importacao_em_lote_nao_aborta(app, db):
    resultado = unidades_services.importar_unidades([
        {'codigo': '101', 'nome': 'Centro'},
        {'nome': 'Sem código'},
        {'codigo': '102', 'fase': 'extinta'},
        {'codigo': '103', 'nome': 'Norte'},
    ], fila=FilaLimitada())

    assert resultado['resumo'] == {'total': 4, 'success': 2, 'skipped': 1, 'error': 1}
    assert [r['status'] for r in resultado['resultados']] == ['success', 'skipped', 'error', 'success']
    assert sorted(db.todos(COLECAO_UNIDADES)) == ['101', '103']


# === FRANQUEADOS ===

@pytest.fixture
def unidades(db):
    dados.unidade(db, '101', nome='Centro', email='centro@franquia.com', telefone='5511988887777')
    dados.unidade(db, '102', nome='Norte', email='norte@franquia.com')
    dados.unidade(db, '103', nome='Sul')
    dados.unidade(db, '104', nome='Leste', email='leste@franquia.com')
    dados.usuario(db, 'existente', 'leste@franquia.com')


@patch('treinamento.unidades.services.whatsapp.enviar_texto', return_value={'messageId': 'm1'})
def test_franqueados_em_lote(mock_envio, app, db, unidades):
    resultado = unidades_services.criar_franqueados_em_lote(fila=FilaLimitada())

    assert resultado['resumo'] == {'total': 3, 'success': 2, 'skipped': 1, 'error': 0}
    por_unidade = {r['unidade_codigo']: r for r in resultado['resultados']}
    assert por_unidade['101']['whatsapp'] == 'enviado'
    assert por_unidade['102']['whatsapp'] == 'sem_telefone'
    assert por_unidade['104']['status'] == 'skipped'
    assert '103' not in por_unidade

    usuario_id, usuario = _usuario_por_email(db, 'centro@franquia.com')
    assert usuario['papel'] == 'Franqueado'
    assert usuario['unidade_codigo'] == '101'

    senha = por_unidade['101']['senha_temporaria']
    credencial = db.ler(COLECAO_CREDENCIAIS, usuario_id)
    assert senha not in credencial.values()
    assert check_password_hash(credencial['senha_hash'], senha)
    assert credencial['troca_obrigatoria'] is True

    mock_envio.assert_called_once()
    telefone, mensagem = mock_envio.call_args.args
    assert telefone == '5511988887777'
    assert senha in mensagem


@patch('treinamento.unidades.services.whatsapp.enviar_texto', side_effect=ErroDependenciaExterna("Z-API fora"))
def test_falha_no_whatsapp_nao_impede_a_criacao(mock_envio, app, db, unidades):
    resultado = unidades_services.criar_franqueados_em_lote(fila=FilaLimitada())

    por_unidade = {r['unidade_codigo']: r for r in resultado['resultados']}
    assert por_unidade['101']['status'] == 'success'
    assert por_unidade['101']['whatsapp'] == 'falhou'
    assert por_unidade['101']['senha_temporaria']


def test_segunda_execucao_ignora_todos(app, db, unidades):
    app.config['ZAPI_TOKEN'] = None
    primeira = unidades_services.criar_franqueados_em_lote(fila=FilaLimitada())
    segunda = unidades_services.criar_franqueados_em_lote(fila=FilaLimitada())

    assert primeira['resultados'][0]['whatsapp'] == 'nao_configurado'
    assert segunda['resumo'] == {'total': 3, 'success': 0, 'skipped': 3, 'error': 0}


def test_redefinir_senha(app, db):
    app.config['ZAPI_TOKEN'] = None
    dados.usuario(db, 'franq1', 'franq@exemplo.com', papel='Franqueado')
    primeira = auth_services.definir_senha_temporaria('franq1')

    resultado = unidades_services.redefinir_senha('franq1')

    credencial = db.ler(COLECAO_CREDENCIAIS, 'franq1')
    assert resultado['senha_temporaria'] != primeira
    assert check_password_hash(credencial['senha_hash'], resultado['senha_temporaria'])
    assert resultado['whatsapp'] == 'sem_telefone'


# === COLABORADORES ===

@pytest.fixture
def pendente(db):
    dados.unidade(db, '101', nome='Centro')
    dados.unidade(db, '102', nome='Norte')
    dados.usuario(db, 'franq101', 'f101@franquia.com', papel='Franqueado', unidade_codigo='101')
    dados.usuario(db, 'franq102', 'f102@franquia.com', papel='Franqueado', unidade_codigo='102')
    colaborador = unidades_services.registrar_colaborador({
        'nome': 'Ana Lima', 'email': 'ana@exemplo.com', 'telefone': '11 97777-6666',
        'unidade_codigo': '101', 'senha': 'senha-forte', 'cargo': 'Vendedora',
    })
    return colaborador['id']


def test_colaborador_nasce_pendente_e_inativo(app, db, pendente):
    colaborador = db.ler(COLECAO_USUARIOS, pendente)
    assert colaborador['status_aprovacao'] == 'pendente'
    assert colaborador['ativo'] is False
    assert colaborador['cargo'] == 'Vendedora'
    assert check_password_hash(db.ler(COLECAO_CREDENCIAIS, pendente)['senha_hash'], 'senha-forte')

    with pytest.raises(ErroAutorizacao):
        auth_services.autenticar_com_senha('ana@exemplo.com', 'senha-forte')


def test_cadastro_de_colaborador_validado(app, db):
    dados.unidade(db, '101')
    with pytest.raises(ErroValidacao):
        unidades_services.registrar_colaborador({'nome': 'Ana', 'email': 'ana@exemplo.com'})
    with pytest.raises(ErroValidacao):
        unidades_services.registrar_colaborador(
            {'nome': 'Ana', 'email': 'ana@exemplo.com', 'unidade_codigo': '101', 'senha': 'curta'}
        )


def test_franqueado_de_outra_unidade_nao_aprova(app, db, pendente):
    with pytest.raises(ErroAutorizacao):
        unidades_services.aprovar_colaborador('franq102', pendente, True)
    assert db.ler(COLECAO_USUARIOS, pendente)['status_aprovacao'] == 'pendente'


@patch('treinamento.unidades.services.whatsapp.enviar_texto', return_value={})
def test_franqueado_da_unidade_aprova(mock_envio, app, db, pendente):
    colaborador = unidades_services.aprovar_colaborador('franq101', pendente, True)

    assert colaborador['status_aprovacao'] == 'aprovado'
    gravado = db.ler(COLECAO_USUARIOS, pendente)
    assert gravado['ativo'] is True
    assert gravado['aprovado_por'] == 'franq101'
    mock_envio.assert_called_once()
    assert 'Centro' in mock_envio.call_args.args[1]

    usuario, _ = auth_services.autenticar_com_senha('ana@exemplo.com', 'senha-forte')
    assert usuario['id'] == pendente

    with pytest.raises(ErroValidacao):
        unidades_services.aprovar_colaborador('franq101', pendente, False)


def test_admin_rejeita(app, db, pendente):
    dados.admin(db)
    colaborador = unidades_services.aprovar_colaborador('admin1', pendente, False)

    assert colaborador['status_aprovacao'] == 'rejeitado'
    assert db.ler(COLECAO_USUARIOS, pendente)['ativo'] is False


def test_rotas_de_aprovacao(client, db, login, pendente):
    dados.usuario(db, 'aluno1', 'aluno@exemplo.com')
    login('aluno1')
    assert client.get('/unidades/aprovacoes').status_code == 403

    login('franq102')
    assert client.get('/unidades/aprovacoes').get_json()['pendentes'] == []

    login('franq101')
    pendentes = client.get('/unidades/aprovacoes').get_json()['pendentes']
    assert [p['id'] for p in pendentes] == [pendente]

    with patch('treinamento.unidades.services.whatsapp.enviar_texto', return_value={}):
        resposta = client.post(f'/unidades/colaboradores/{pendente}/aprovacao', json={'aprovado': True})
    assert resposta.get_json() == {'success': True, 'status_aprovacao': 'aprovado'}


def test_cadastro_publico_de_colaborador(client, db):
    dados.unidade(db, '101')
    resposta = client.post('/unidades/colaboradores', json={
        'nome': 'Ana Lima', 'email': 'ana@exemplo.com', 'unidade_codigo': '101',
    })

    assert resposta.status_code == 201
    assert resposta.get_json()['usuario']['status_aprovacao'] == 'pendente'


def test_franqueado_sem_unidade_nao_ve_pendentes(client, db, login, pendente):
    dados.usuario(db, 'franq_solto', 'solto@franquia.com', papel='Franqueado')
    login('franq_solto')

    resposta = client.get('/unidades/aprovacoes')

    assert resposta.status_code == 403
    assert 'pendentes' not in resposta.get_json()
