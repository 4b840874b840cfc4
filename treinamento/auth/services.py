"""
Camada de Serviço (Service Layer) da Autenticação

Responsável pela lógica de banco de dados dos usuários e pelas
credenciais de acesso por senha. Senhas nunca são gravadas em texto
puro: a coleção de credenciais guarda apenas o hash, e a senha
temporária é revelada uma única vez a quem a gerou.
"""

import secrets
import string
from typing import Optional, Tuple

from google.cloud import firestore
from werkzeug.security import check_password_hash, generate_password_hash

from treinamento.core import database
from treinamento.core.constants import (
    APROVACAO_APROVADO,
    COLECAO_CREDENCIAIS,
    COLECAO_USUARIOS,
    TIPO_ALUNO,
)
from treinamento.core.erros import ErroAutorizacao, ErroNaoEncontrado, ErroValidacao
from treinamento.core.logger import get_logger

# Inicializa o logger para este módulo
logger = get_logger(__name__)

ALFABETO_SENHA = string.ascii_letters + string.digits
TAMANHO_SENHA_TEMPORARIA = 10
TAMANHO_MINIMO_SENHA = 8


def normalizar_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def _para_sessao(usuario: dict) -> dict:
    """Recorte do usuário que pode ir para o cookie de sessão."""
    return {
        'id': usuario['id'],
        'email': usuario.get('email'),
        'nome': usuario.get('nome'),
        'tipo_usuario': usuario.get('tipo_usuario'),
        'papel': usuario.get('papel'),
        'unidade_codigo': usuario.get('unidade_codigo'),
    }


def obter_usuario(usuario_id: str) -> Optional[dict]:
    snapshot = database.get_db().collection(COLECAO_USUARIOS).document(usuario_id).get()
    return database.snapshot_para_dict(snapshot)


def buscar_usuario_por_email(email: str) -> Optional[dict]:
    email = normalizar_email(email)
    if not email:
        return None
    docs = (
        database.get_db().collection(COLECAO_USUARIOS)
        .where('email', '==', email)
        .limit(1)
        .stream()
    )
    for doc in docs:
        return database.snapshot_para_dict(doc)
    return None


def criar_usuario(dados: dict) -> dict:
    """
    Cria um usuário. E-mail é único: se já existir, levanta ErroValidacao.
    """
    email = normalizar_email(dados.get('email'))
    nome = (dados.get('nome') or '').strip()
    if not email or not nome:
        raise ErroValidacao("Campos obrigatórios: nome e email.")
    if buscar_usuario_por_email(email):
        raise ErroValidacao(f"Usuário já existe com o e-mail {email}.")

    novo = {
        'nome': nome,
        'email': email,
        'telefone': dados.get('telefone'),
        'tipo_usuario': dados.get('tipo_usuario', TIPO_ALUNO),
        'papel': dados.get('papel'),
        'unidade_codigo': dados.get('unidade_codigo'),
        'ativo': dados.get('ativo', True),
        'status_aprovacao': dados.get('status_aprovacao', APROVACAO_APROVADO),
        'google_id': dados.get('google_id'),
        'cargo': dados.get('cargo'),
        'criado_em': firestore.SERVER_TIMESTAMP,
    }
    _, doc_ref = database.get_db().collection(COLECAO_USUARIOS).add(novo)
    logger.info(f"Usuário criado: {email} ({novo['tipo_usuario']})")

    novo.pop('criado_em')
    novo['id'] = doc_ref.id
    return novo


def verificar_ou_criar_usuario(google_profile: dict) -> dict:
    """
    Busca o usuário pelo e-mail do Google ou cria um novo como Aluno.
    Retorna o recorte de sessão.
    """
    email = normalizar_email(google_profile.get('email'))
    if not email:
        logger.error("Perfil do Google recebido sem e-mail.")
        raise ErroValidacao("Perfil do Google não contém e-mail.")

    try:
        usuario = buscar_usuario_por_email(email)
        if usuario:
            if not usuario.get('ativo', True):
                raise ErroAutorizacao("Usuário inativo.")
            if not usuario.get('google_id') and google_profile.get('google_id'):
                database.get_db().collection(COLECAO_USUARIOS).document(usuario['id']).update(
                    {'google_id': google_profile['google_id']}
                )
            logger.info(f"Login efetuado: {email} (Tipo: {usuario.get('tipo_usuario')})")
            return _para_sessao(usuario)

        # Primeiro acesso: ninguém nasce admin nem professor
        logger.info(f"Criando novo usuário via Google: {email}")
        usuario = criar_usuario({
            'email': email,
            'nome': google_profile.get('nome') or email,
            'google_id': google_profile.get('google_id'),
        })
        return _para_sessao(usuario)

    except ErroAutorizacao:
        raise
    except Exception as e:
        logger.error(f"Erro ao processar login para {email}: {e}", exc_info=True)
        raise


# === CREDENCIAIS (SENHA) ===

def gerar_senha_temporaria() -> str:
    return ''.join(secrets.choice(ALFABETO_SENHA) for _ in range(TAMANHO_SENHA_TEMPORARIA))


def definir_senha_temporaria(usuario_id: str) -> str:
    """
    Gera uma senha temporária, grava apenas o hash e devolve o texto puro
    ao chamador, que deve entregá-lo uma única vez.
    """
    senha = gerar_senha_temporaria()
    database.get_db().collection(COLECAO_CREDENCIAIS).document(usuario_id).set({
        'senha_hash': generate_password_hash(senha),
        'troca_obrigatoria': True,
        'atualizado_em': firestore.SERVER_TIMESTAMP,
    })
    logger.info(f"Senha temporária definida para o usuário {usuario_id}.")
    return senha


def autenticar_com_senha(email: str, senha: str) -> Tuple[dict, bool]:
    """
    Retorna (recorte de sessão, troca_obrigatoria). Qualquer falha vira
    ErroAutorizacao com a mesma mensagem, para não revelar quais e-mails existem.
    """
    negado = ErroAutorizacao("E-mail ou senha inválidos.")

    usuario = buscar_usuario_por_email(email)
    if not usuario or not usuario.get('ativo', True):
        raise negado

    snapshot = database.get_db().collection(COLECAO_CREDENCIAIS).document(usuario['id']).get()
    credencial = snapshot.to_dict() if snapshot.exists else None
    if not credencial or not check_password_hash(credencial.get('senha_hash', ''), senha or ''):
        logger.warning(f"Tentativa de login por senha recusada: {normalizar_email(email)}")
        raise negado

    return _para_sessao(usuario), bool(credencial.get('troca_obrigatoria', False))


def trocar_senha(usuario_id: str, senha_atual: str, nova_senha: str) -> None:
    if not nova_senha or len(nova_senha) < TAMANHO_MINIMO_SENHA:
        raise ErroValidacao(f"A nova senha deve ter ao menos {TAMANHO_MINIMO_SENHA} caracteres.")

    doc_ref = database.get_db().collection(COLECAO_CREDENCIAIS).document(usuario_id)
    snapshot = doc_ref.get()
    if not snapshot.exists:
        raise ErroNaoEncontrado("Usuário sem credencial de senha.")
    if not check_password_hash(snapshot.to_dict().get('senha_hash', ''), senha_atual or ''):
        raise ErroAutorizacao("Senha atual incorreta.")

    doc_ref.set({
        'senha_hash': generate_password_hash(nova_senha),
        'troca_obrigatoria': False,
        'atualizado_em': firestore.SERVER_TIMESTAMP,
    })
    logger.info(f"Senha alterada pelo usuário {usuario_id}.")
