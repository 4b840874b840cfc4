"""
Resolução de Papéis e Permissões

Responde, para um usuário autenticado, quais papéis se aplicam
(admin, professor, aluno, franqueado) e o que um professor pode ver
ou editar em cada módulo. Toda dúvida nega o acesso: ausência de
registro, erro de consulta ou usuário inexistente resultam em False.
Administradores passam por qualquer checagem de módulo.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import wraps
from typing import Dict, Optional, Set

from flask import current_app, session

from treinamento.core import database
from treinamento.core.constants import (
    COLECAO_ADMINS,
    COLECAO_PERMISSOES_PROFESSOR,
    COLECAO_USUARIOS,
    MODULOS_SISTEMA,
    PAPEL_FRANQUEADO,
    TIPO_ADMIN,
    TIPO_ALUNO,
    TIPO_PROFESSOR,
)
from treinamento.core.erros import ErroAutorizacao, ErroNaoAutenticado, ErroValidacao
from treinamento.core.logger import get_logger

logger = get_logger(__name__)


class Papel(str, Enum):
    ADMIN = 'admin'
    PROFESSOR = 'professor'
    ALUNO = 'aluno'
    FRANQUEADO = 'franqueado'


@dataclass(frozen=True)
class PermissaoModulo:
    pode_ver: bool = False
    pode_editar: bool = False
    campos_habilitados: Dict[str, bool] = field(default_factory=dict)


SEM_ACESSO = PermissaoModulo()

# === CACHE DE ADMIN ===
# usuario_id -> (expira_em, eh_admin). Apenas respostas conclusivas entram.
_cache_admin: Dict[str, tuple] = {}
_trava_cache = threading.Lock()


def limpar_cache_admin(usuario_id: Optional[str] = None) -> None:
    with _trava_cache:
        if usuario_id is None:
            _cache_admin.clear()
        else:
            _cache_admin.pop(usuario_id, None)


def _ttl_admin() -> int:
    try:
        return int(current_app.config.get('ADMIN_CACHE_TTL', 300))
    except RuntimeError:
        # Fora de um app context (scripts)
        return 300


def _obter_usuario(usuario_id: str) -> Optional[dict]:
    snapshot = database.get_db().collection(COLECAO_USUARIOS).document(usuario_id).get()
    return database.snapshot_para_dict(snapshot)


def _consultar_admin(usuario_id: str) -> bool:
    usuario = _obter_usuario(usuario_id)
    if usuario and str(usuario.get('tipo_usuario', '')).lower() == TIPO_ADMIN.lower() \
            and usuario.get('ativo', True):
        return True

    registro = database.get_db().collection(COLECAO_ADMINS).document(usuario_id).get()
    return bool(registro.exists and (registro.to_dict() or {}).get('ativo', False))


def eh_admin(usuario_id: Optional[str]) -> bool:
    if not usuario_id:
        return False

    agora = time.monotonic()
    with _trava_cache:
        em_cache = _cache_admin.get(usuario_id)
    if em_cache and em_cache[0] > agora:
        return em_cache[1]

    try:
        resultado = _consultar_admin(usuario_id)
    except Exception as e:
        logger.error(f"Falha ao verificar admin {usuario_id}; acesso negado: {e}")
        return False

    with _trava_cache:
        _cache_admin[usuario_id] = (agora + _ttl_admin(), resultado)
    return resultado


def eh_professor(usuario_id: Optional[str]) -> bool:
    if not usuario_id:
        return False
    try:
        usuario = _obter_usuario(usuario_id)
    except Exception as e:
        logger.error(f"Falha ao verificar professor {usuario_id}; acesso negado: {e}")
        return False
    return bool(usuario and usuario.get('tipo_usuario') == TIPO_PROFESSOR and usuario.get('ativo', False))


def permissao_modulo(professor_id: str, modulo: str) -> PermissaoModulo:
    """Permissão gravada para (professor, módulo). Sem registro, sem acesso."""
    try:
        snapshot = (
            database.get_db()
            .collection(COLECAO_PERMISSOES_PROFESSOR)
            .document(f"{professor_id}_{modulo}")
            .get()
        )
    except Exception as e:
        logger.error(f"Falha ao ler permissão {professor_id}/{modulo}; acesso negado: {e}")
        return SEM_ACESSO

    if not snapshot.exists:
        return SEM_ACESSO

    dados = snapshot.to_dict() or {}
    return PermissaoModulo(
        pode_ver=bool(dados.get('pode_ver', False)),
        pode_editar=bool(dados.get('pode_editar', False)),
        campos_habilitados=dict(dados.get('campos_habilitados') or {}),
    )


def permissao_efetiva(usuario_id: Optional[str], modulo: str) -> PermissaoModulo:
    if eh_admin(usuario_id):
        return PermissaoModulo(
            pode_ver=True, pode_editar=True,
            campos_habilitados={campo: True for campo in MODULOS_SISTEMA.get(modulo, [])},
        )
    if eh_professor(usuario_id):
        return permissao_modulo(usuario_id, modulo)
    return SEM_ACESSO


def pode_ver(usuario_id: Optional[str], modulo: str) -> bool:
    return permissao_efetiva(usuario_id, modulo).pode_ver


def pode_editar(usuario_id: Optional[str], modulo: str) -> bool:
    return permissao_efetiva(usuario_id, modulo).pode_editar


def campo_habilitado(usuario_id: Optional[str], modulo: str, campo: str) -> bool:
    permissao = permissao_efetiva(usuario_id, modulo)
    return bool(permissao.campos_habilitados.get(campo, False))


def resolver_papeis(usuario_id: Optional[str]) -> Set[Papel]:
    papeis: Set[Papel] = set()
    if not usuario_id:
        return papeis

    if eh_admin(usuario_id):
        papeis.add(Papel.ADMIN)

    try:
        usuario = _obter_usuario(usuario_id)
    except Exception as e:
        logger.error(f"Falha ao resolver papéis de {usuario_id}: {e}")
        return papeis

    if not usuario or not usuario.get('ativo', True):
        return papeis
    if usuario.get('tipo_usuario') == TIPO_PROFESSOR:
        papeis.add(Papel.PROFESSOR)
    if usuario.get('tipo_usuario') == TIPO_ALUNO:
        papeis.add(Papel.ALUNO)
        if usuario.get('papel') == PAPEL_FRANQUEADO:
            papeis.add(Papel.FRANQUEADO)
    return papeis


def salvar_permissoes(professor_id: str, permissoes: list) -> list:
    """
    Grava (upsert) as permissões de um professor.
    Cada item: {'modulo', 'pode_ver', 'pode_editar', 'campos_habilitados'}.
    """
    if not eh_professor(professor_id):
        raise ErroValidacao("O usuário informado não é um professor ativo.")

    db = database.get_db()
    lote = db.batch()
    gravadas = []
    for item in permissoes:
        modulo = item.get('modulo')
        if modulo not in MODULOS_SISTEMA:
            raise ErroValidacao(f"Módulo desconhecido: {modulo!r}")

        campos = item.get('campos_habilitados') or {}
        desconhecidos = set(campos) - set(MODULOS_SISTEMA[modulo])
        if desconhecidos:
            raise ErroValidacao(f"Campos inválidos para '{modulo}': {', '.join(sorted(desconhecidos))}")

        registro = {
            'professor_id': professor_id,
            'modulo': modulo,
            'pode_ver': bool(item.get('pode_ver', False)),
            'pode_editar': bool(item.get('pode_editar', False)),
            'campos_habilitados': {campo: bool(v) for campo, v in campos.items()},
        }
        lote.set(db.collection(COLECAO_PERMISSOES_PROFESSOR).document(f"{professor_id}_{modulo}"), registro)
        gravadas.append(registro)

    lote.commit()
    logger.info(f"Permissões do professor {professor_id} atualizadas ({len(gravadas)} módulos).")
    return gravadas


# === DECORATORS DE ROTA ===

def usuario_atual_id() -> Optional[str]:
    usuario = session.get('usuario')
    return usuario.get('id') if usuario else None


def requer_login(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not usuario_atual_id():
            raise ErroNaoAutenticado("É necessário estar autenticado.")
        return view(*args, **kwargs)
    return wrapper


def requer_admin(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        usuario_id = usuario_atual_id()
        if not eh_admin(usuario_id):
            logger.warning(f"Acesso de admin negado: {usuario_id}")
            raise ErroAutorizacao("Acesso restrito a administradores.")
        return view(*args, **kwargs)
    return wrapper


def requer_permissao(modulo: str, editar: bool = False):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            usuario_id = usuario_atual_id()
            permitido = pode_editar(usuario_id, modulo) if editar else pode_ver(usuario_id, modulo)
            if not permitido:
                logger.warning(f"Acesso negado a '{modulo}' (editar={editar}): {usuario_id}")
                raise ErroAutorizacao(f"Sem permissão para o módulo '{modulo}'.")
            return view(*args, **kwargs)
        return wrapper
    return decorator
