"""
Camada de Serviço (Service Layer) das Turmas

Cadastro de turmas e mudanças manuais de status. As mudanças automáticas
ficam em `ciclo_vida`.
"""

from datetime import datetime, timezone
from typing import List, Optional

from google.api_core.exceptions import FailedPrecondition
from google.cloud import firestore

from treinamento.core import database
from treinamento.core.constants import COLECAO_CURSOS, COLECAO_TURMAS
from treinamento.core.erros import ErroNaoEncontrado, ErroValidacao
from treinamento.core.logger import get_logger
from treinamento.turmas.ciclo_vida import StatusTurma, status_de, validar_transicao

logger = get_logger(__name__)


def _converter_data(valor, campo: str) -> Optional[datetime]:
    if valor in (None, ''):
        return None
    if isinstance(valor, datetime):
        data = valor
    else:
        try:
            data = datetime.fromisoformat(str(valor).replace('Z', '+00:00'))
        except ValueError:
            raise ErroValidacao(f"Data inválida em '{campo}': {valor}")
    if data.tzinfo is None:
        data = data.replace(tzinfo=timezone.utc)
    return data


def obter_turma(turma_id: str) -> dict:
    if not turma_id:
        raise ErroValidacao("turma_id é obrigatório.")
    snapshot = database.get_db().collection(COLECAO_TURMAS).document(turma_id).get()
    turma = database.snapshot_para_dict(snapshot)
    if not turma:
        raise ErroNaoEncontrado(f"Turma '{turma_id}' não encontrada.")
    return turma


def criar_turma(dados: dict, criado_por: Optional[str] = None) -> dict:
    """
    Cria uma turma em 'agendada'. Exige curso existente, responsável e prazo.
    """
    curso_id = (dados.get('curso_id') or '').strip()
    responsavel_id = (dados.get('responsavel_id') or '').strip()
    prazo = _converter_data(dados.get('prazo_conclusao'), 'prazo_conclusao')

    faltando = [nome for nome, valor in (
        ('curso_id', curso_id), ('responsavel_id', responsavel_id), ('prazo_conclusao', prazo),
    ) if not valor]
    if faltando:
        raise ErroValidacao(f"Campos obrigatórios: {', '.join(faltando)}")

    db = database.get_db()
    if not db.collection(COLECAO_CURSOS).document(curso_id).get().exists:
        raise ErroNaoEncontrado(f"Curso '{curso_id}' não encontrado.")

    abertura = _converter_data(dados.get('abertura_inscricoes_em'), 'abertura_inscricoes_em')
    inicio = _converter_data(dados.get('inicio_em'), 'inicio_em')
    if inicio and prazo < inicio:
        raise ErroValidacao("O prazo de conclusão não pode ser anterior ao início.")

    capacidade = dados.get('capacidade')
    if capacidade is not None:
        try:
            capacidade = int(capacidade)
        except (TypeError, ValueError):
            raise ErroValidacao("Capacidade deve ser um número inteiro.")
        if capacidade < 1:
            raise ErroValidacao("Capacidade deve ser positiva.")

    nova = {
        'curso_id': curso_id,
        'codigo': dados.get('codigo'),
        'nome': dados.get('nome'),
        'responsavel_id': responsavel_id,
        'status': StatusTurma.AGENDADA.value,
        'abertura_inscricoes_em': abertura,
        'inicio_em': inicio,
        'prazo_conclusao': prazo,
        'capacidade': capacidade,
        'criado_por': criado_por,
        'criado_em': firestore.SERVER_TIMESTAMP,
    }
    _, doc_ref = db.collection(COLECAO_TURMAS).add(nova)
    logger.info(f"Turma criada: {doc_ref.id} (curso {curso_id})")

    nova.pop('criado_em')
    nova['id'] = doc_ref.id
    return nova


def listar_turmas(curso_id: Optional[str] = None, status: Optional[str] = None) -> List[dict]:
    consulta = database.get_db().collection(COLECAO_TURMAS)
    if curso_id:
        consulta = consulta.where('curso_id', '==', curso_id)
    if status:
        consulta = consulta.where('status', '==', status_de(status).value)
    return [database.snapshot_para_dict(doc) for doc in consulta.stream()]


def alterar_status(turma_id: str, destino, usuario_id: Optional[str] = None,
                   forcar: bool = False) -> dict:
    """
    Mudança manual de status. `forcar` (somente administradores) permite
    sair de estados terminais; o chamador decide quem pode forçar.
    """
    destino = status_de(destino)
    db = database.get_db()
    doc_ref = db.collection(COLECAO_TURMAS).document(turma_id)
    snapshot = doc_ref.get()
    if not snapshot.exists:
        raise ErroNaoEncontrado(f"Turma '{turma_id}' não encontrada.")

    origem = snapshot.to_dict().get('status')
    validar_transicao(origem, destino, forcar=forcar)

    agora = datetime.now(timezone.utc)
    try:
        doc_ref.update(
            {
                'status': destino.value,
                'status_anterior': origem,
                'atualizado_em': agora,
                'atualizado_por': usuario_id,
                'alteracao_forcada': forcar,
            },
            option=db.write_option(last_update_time=snapshot.update_time),
        )
    except FailedPrecondition:
        raise ErroValidacao("A turma foi alterada por outro processo. Recarregue e tente novamente.")

    logger.info(f"Turma {turma_id}: {origem} -> {destino.value} por {usuario_id} (forçada={forcar})")
    turma = snapshot.to_dict()
    turma.update({'id': turma_id, 'status': destino.value, 'status_anterior': origem})
    return turma


def iniciar_turma(turma_id: str, usuario_id: Optional[str] = None) -> dict:
    return alterar_status(turma_id, StatusTurma.EM_ANDAMENTO, usuario_id)


def encerrar_turma(turma_id: str, usuario_id: Optional[str] = None) -> dict:
    return alterar_status(turma_id, StatusTurma.ENCERRADA, usuario_id)


def cancelar_turma(turma_id: str, usuario_id: Optional[str] = None) -> dict:
    return alterar_status(turma_id, StatusTurma.CANCELADA, usuario_id)
