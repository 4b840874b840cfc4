"""
Módulo de Conexão com o Banco de Dados (Core)

Mantém o cliente único do Google Firestore usado pelas camadas de serviço.
O cliente é criado na primeira chamada, não na importação, para que scripts
e testes possam substituí-lo antes do primeiro acesso.
"""

from typing import Optional

from google.cloud import firestore

from treinamento.core.logger import get_logger

logger = get_logger(__name__)

_cliente: Optional[firestore.Client] = None


def get_db() -> firestore.Client:
    """
    Retorna o cliente do Firestore, conectando na primeira chamada.

    O SDK busca as credenciais em 'GOOGLE_APPLICATION_CREDENTIALS'.
    Levanta ConnectionError se a conexão não puder ser criada.
    """
    global _cliente
    if _cliente is not None:
        return _cliente

    try:
        _cliente = firestore.Client()
        logger.info("Conexão com o Firestore estabelecida com sucesso.")
    except Exception as e:
        logger.critical(f"Erro ao conectar com o Firestore: {e}", exc_info=True)
        raise ConnectionError("Não foi possível conectar ao Firestore.") from e

    return _cliente


def definir_cliente(cliente) -> None:
    """Substitui o cliente em uso (scripts de manutenção e testes)."""
    global _cliente
    _cliente = cliente


def snapshot_para_dict(snapshot) -> Optional[dict]:
    """Converte um DocumentSnapshot em dict com o campo 'id', ou None se não existir."""
    if snapshot is None or not snapshot.exists:
        return None
    dados = snapshot.to_dict() or {}
    dados['id'] = snapshot.id
    return dados
