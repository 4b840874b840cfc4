"""
Camada de Serviço (Service Layer) das Unidades

Unidades franqueadas sincronizadas da matriz, criação em lote dos
franqueados de cada unidade, redefinição de senha e o fluxo de cadastro
e aprovação de colaboradores.

Senhas temporárias são reveladas uma única vez: vão por WhatsApp (quando
há telefone e o gateway está configurado) e no retorno da operação. No
banco fica apenas o hash.
"""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from flask import current_app
from werkzeug.security import generate_password_hash

from treinamento.core import database
from treinamento.core.constants import (
    APROVACAO_APROVADO,
    APROVACAO_PENDENTE,
    APROVACAO_REJEITADO,
    COLECAO_CREDENCIAIS,
    COLECAO_UNIDADES,
    COLECAO_USUARIOS,
    FASES_UNIDADE,
    PAPEL_COLABORADOR,
    PAPEL_FRANQUEADO,
    TIPO_ALUNO,
)
from treinamento.core.erros import (
    ErroAutorizacao,
    ErroNaoEncontrado,
    ErroTreinamento,
    ErroValidacao,
)
from treinamento.core.fila import IGNORADO, FilaLimitada, ResultadoItem, fila_da_config, resumo
from treinamento.core.logger import get_logger
from treinamento.core import whatsapp
from treinamento.auth import services as auth_services
from treinamento.auth.permissoes import eh_admin

logger = get_logger(__name__)

FASE_PADRAO = 'operacao'


def _agora() -> datetime:
    return datetime.now(timezone.utc)


# === UNIDADES ===

def obter_unidade(codigo: str) -> dict:
    snapshot = database.get_db().collection(COLECAO_UNIDADES).document(str(codigo)).get()
    unidade = database.snapshot_para_dict(snapshot)
    if not unidade:
        raise ErroNaoEncontrado(f"Unidade '{codigo}' não encontrada.")
    return unidade


def upsert_unidade_da_matriz(dados: dict) -> Tuple[dict, bool]:
    """
    Cria ou atualiza a unidade pelo código. Retorna (unidade, criada).
    Aceita tanto os nomes da matriz (codigo_grupo, grupo) quanto os locais.
    """
    codigo = str(dados.get('codigo') or dados.get('codigo_grupo') or '').strip()
    if not codigo:
        raise ErroValidacao("Código da unidade é obrigatório.")

    fase = dados.get('fase') or FASE_PADRAO
    if fase not in FASES_UNIDADE:
        raise ErroValidacao(f"Fase de unidade desconhecida: {fase!r}")

    unidade = {
        'codigo': codigo,
        'nome': (dados.get('nome') or dados.get('grupo') or f"UNIDADE {codigo}").strip(),
        'email': auth_services.normalizar_email(dados.get('email')) or None,
        'telefone': whatsapp.normalizar_telefone(dados.get('telefone')),
        'cidade': dados.get('cidade'),
        'uf': dados.get('uf') or dados.get('estado'),
        'fase': fase,
        'sincronizado_em': _agora(),
    }

    doc_ref = database.get_db().collection(COLECAO_UNIDADES).document(codigo)
    criada = not doc_ref.get().exists
    doc_ref.set(unidade, merge=True)
    logger.info(f"Unidade {codigo} {'criada' if criada else 'atualizada'} a partir da matriz.")

    unidade['id'] = codigo
    return unidade, criada


def importar_unidades(registros: List[dict], fila: Optional[FilaLimitada] = None) -> dict:
    """Importação em lote. Registros sem código são ignorados, não falham."""
    fila = fila or fila_da_config(current_app.config)

    def tarefa(registro):
        codigo = registro.get('codigo') or registro.get('codigo_grupo')
        if not codigo:
            return ResultadoItem(item=registro, status=IGNORADO, motivo="Registro sem código de unidade")
        _, criada = upsert_unidade_da_matriz(registro)
        return {'codigo': str(codigo), 'criada': criada}

    resultados = fila.executar(registros, tarefa)
    contagem = resumo(resultados)
    logger.info(f"Importação de unidades concluída: {contagem}")
    return {'resumo': contagem, 'resultados': [r.para_dict() for r in resultados]}


# === FRANQUEADOS E SENHAS ===

def _entregar_senha(usuario: dict, senha: str) -> str:
    """
    Envia a senha por WhatsApp. Devolve o estado da entrega:
    'enviado', 'sem_telefone', 'nao_configurado' ou 'falhou'.
    """
    if not usuario.get('telefone'):
        return 'sem_telefone'
    if not whatsapp.whatsapp_configurado():
        return 'nao_configurado'
    try:
        whatsapp.enviar_texto(
            usuario['telefone'],
            whatsapp.mensagem_senha_temporaria(usuario.get('nome', ''), usuario.get('email', ''), senha),
        )
        return 'enviado'
    except ErroTreinamento as e:
        logger.warning(f"Senha de {usuario.get('email')} não entregue por WhatsApp: {e.mensagem}")
        return 'falhou'


def criar_franqueados_em_lote(fila: Optional[FilaLimitada] = None) -> dict:
    """
    Cria um franqueado para cada unidade com e-mail. E-mails que já têm
    usuário são ignorados.
    """
    fila = fila or fila_da_config(current_app.config)
    unidades = [
        database.snapshot_para_dict(doc)
        for doc in database.get_db().collection(COLECAO_UNIDADES).stream()
    ]
    unidades = [u for u in unidades if u.get('email')]

    def tarefa(unidade):
        base = {'email': unidade['email'], 'unidade_codigo': unidade['codigo'], 'unidade_nome': unidade.get('nome')}
        if auth_services.buscar_usuario_por_email(unidade['email']):
            return ResultadoItem(item=unidade['codigo'], status=IGNORADO,
                                 motivo="Usuário já existe com este email", dados=base)

        usuario = auth_services.criar_usuario({
            'email': unidade['email'],
            'nome': f"Franqueado {unidade.get('nome') or unidade['codigo']}",
            'telefone': unidade.get('telefone'),
            'tipo_usuario': TIPO_ALUNO,
            'papel': PAPEL_FRANQUEADO,
            'unidade_codigo': unidade['codigo'],
        })
        senha = auth_services.definir_senha_temporaria(usuario['id'])
        return {
            **base,
            'usuario_id': usuario['id'],
            'senha_temporaria': senha,
            'whatsapp': _entregar_senha(usuario, senha),
        }

    resultados = fila.executar(unidades, tarefa)
    contagem = resumo(resultados)
    logger.info(f"Criação de franqueados concluída: {contagem}")
    return {'resumo': contagem, 'resultados': [r.para_dict() for r in resultados]}


def redefinir_senha(usuario_id: str) -> dict:
    usuario = auth_services.obter_usuario(usuario_id)
    if not usuario:
        raise ErroNaoEncontrado(f"Usuário '{usuario_id}' não encontrado.")

    senha = auth_services.definir_senha_temporaria(usuario_id)
    return {
        'usuario_id': usuario_id,
        'email': usuario.get('email'),
        'senha_temporaria': senha,
        'whatsapp': _entregar_senha(usuario, senha),
    }


# === COLABORADORES ===

def registrar_colaborador(dados: dict) -> dict:
    """
    Cadastro feito pelo próprio colaborador. Nasce pendente e inativo até a
    aprovação do franqueado da unidade (ou de um admin).
    """
    unidade_codigo = str(dados.get('unidade_codigo') or '').strip()
    senha = dados.get('senha') or ''
    if not unidade_codigo:
        raise ErroValidacao("Campos obrigatórios: nome, email e unidade_codigo.")
    if senha and len(senha) < auth_services.TAMANHO_MINIMO_SENHA:
        raise ErroValidacao(f"A senha deve ter ao menos {auth_services.TAMANHO_MINIMO_SENHA} caracteres.")
    obter_unidade(unidade_codigo)

    usuario = auth_services.criar_usuario({
        'nome': dados.get('nome'),
        'email': dados.get('email'),
        'telefone': whatsapp.normalizar_telefone(dados.get('telefone')),
        'tipo_usuario': TIPO_ALUNO,
        'papel': PAPEL_COLABORADOR,
        'unidade_codigo': unidade_codigo,
        'ativo': False,
        'status_aprovacao': APROVACAO_PENDENTE,
        'cargo': dados.get('cargo'),
    })

    if senha:
        database.get_db().collection(COLECAO_CREDENCIAIS).document(usuario['id']).set({
            'senha_hash': generate_password_hash(senha),
            'troca_obrigatoria': False,
            'atualizado_em': _agora(),
        })

    logger.info(f"Colaborador {usuario['email']} aguardando aprovação da unidade {unidade_codigo}.")
    return usuario


def _pode_aprovar(aprovador_id: str, unidade_codigo: str) -> bool:
    if eh_admin(aprovador_id):
        return True
    aprovador = auth_services.obter_usuario(aprovador_id)
    return bool(
        unidade_codigo
        and aprovador
        and aprovador.get('ativo', True)
        and aprovador.get('papel') == PAPEL_FRANQUEADO
        and aprovador.get('unidade_codigo') == unidade_codigo
    )


def aprovar_colaborador(aprovador_id: str, colaborador_id: str, aprovado: bool) -> dict:
    colaborador = auth_services.obter_usuario(colaborador_id)
    if not colaborador or colaborador.get('papel') != PAPEL_COLABORADOR:
        raise ErroNaoEncontrado("Solicitação não encontrada.")
    if colaborador.get('status_aprovacao') != APROVACAO_PENDENTE:
        raise ErroValidacao(f"Esta solicitação já foi processada ({colaborador.get('status_aprovacao')}).")
    if not _pode_aprovar(aprovador_id, colaborador.get('unidade_codigo')):
        raise ErroAutorizacao("Apenas o franqueado da unidade ou um administrador pode aprovar.")

    status = APROVACAO_APROVADO if aprovado else APROVACAO_REJEITADO
    alteracoes = {
        'status_aprovacao': status,
        'ativo': bool(aprovado),
        'aprovado_por': aprovador_id,
        'aprovado_em': _agora(),
    }
    database.get_db().collection(COLECAO_USUARIOS).document(colaborador_id).update(alteracoes)
    logger.info(f"Colaborador {colaborador_id} {status} por {aprovador_id}")

    if aprovado and colaborador.get('telefone') and whatsapp.whatsapp_configurado():
        try:
            unidade = obter_unidade(colaborador['unidade_codigo'])
            whatsapp.enviar_texto(
                colaborador['telefone'],
                whatsapp.mensagem_colaborador_aprovado(colaborador.get('nome', ''), unidade.get('nome', '')),
            )
        except ErroTreinamento as e:
            logger.warning(f"Aviso de aprovação não enviado para {colaborador_id}: {e.mensagem}")

    colaborador.update(alteracoes)
    return colaborador


def listar_aprovacoes_pendentes(unidade_codigo: Optional[str] = None) -> List[dict]:
    consulta = (
        database.get_db().collection(COLECAO_USUARIOS)
        .where('papel', '==', PAPEL_COLABORADOR)
        .where('status_aprovacao', '==', APROVACAO_PENDENTE)
    )
    if unidade_codigo:
        consulta = consulta.where('unidade_codigo', '==', str(unidade_codigo))
    return [database.snapshot_para_dict(doc) for doc in consulta.stream()]
