"""
Ciclo de Vida das Turmas

Máquina de estados explícita das turmas e as duas rotinas periódicas que
as avançam conforme o relógio:

    agendada -> inscricoes_abertas -> em_andamento -> encerrada
                         \\-> inscricoes_encerradas -/
    (qualquer estado não terminal) -> cancelada

Cada transição é gravada como atualização condicional: só vale se o
documento não mudou desde a leitura. Assim duas execuções simultâneas da
rotina não aplicam a mesma transição duas vezes, e repetir a rotina com o
mesmo instante não altera nada.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from google.api_core.exceptions import FailedPrecondition, NotFound

from treinamento.core import database
from treinamento.core.constants import COLECAO_TURMAS
from treinamento.core.erros import ErroValidacao
from treinamento.core.logger import get_logger

logger = get_logger(__name__)


class StatusTurma(str, Enum):
    AGENDADA = 'agendada'
    INSCRICOES_ABERTAS = 'inscricoes_abertas'
    EM_ANDAMENTO = 'em_andamento'
    INSCRICOES_ENCERRADAS = 'inscricoes_encerradas'
    ENCERRADA = 'encerrada'
    CANCELADA = 'cancelada'


TRANSICOES = {
    StatusTurma.AGENDADA: {
        StatusTurma.INSCRICOES_ABERTAS, StatusTurma.EM_ANDAMENTO, StatusTurma.CANCELADA,
    },
    StatusTurma.INSCRICOES_ABERTAS: {
        StatusTurma.EM_ANDAMENTO, StatusTurma.INSCRICOES_ENCERRADAS,
        StatusTurma.ENCERRADA, StatusTurma.CANCELADA,
    },
    StatusTurma.EM_ANDAMENTO: {
        StatusTurma.INSCRICOES_ENCERRADAS, StatusTurma.ENCERRADA, StatusTurma.CANCELADA,
    },
    StatusTurma.INSCRICOES_ENCERRADAS: {
        StatusTurma.EM_ANDAMENTO, StatusTurma.ENCERRADA, StatusTurma.CANCELADA,
    },
    StatusTurma.ENCERRADA: set(),
    StatusTurma.CANCELADA: set(),
}

STATUS_TERMINAIS = frozenset({StatusTurma.ENCERRADA, StatusTurma.CANCELADA})
STATUS_ABERTOS_PARA_INSCRICAO = frozenset({StatusTurma.INSCRICOES_ABERTAS, StatusTurma.EM_ANDAMENTO})


def status_de(valor) -> StatusTurma:
    try:
        return StatusTurma(valor)
    except ValueError:
        raise ErroValidacao(f"Status de turma desconhecido: {valor!r}")


def validar_transicao(origem, destino, forcar: bool = False) -> None:
    """
    Ponto único de validação de transições.

    `forcar` representa a intervenção administrativa e aceita qualquer
    mudança para um status válido diferente do atual.
    """
    origem, destino = status_de(origem), status_de(destino)
    if origem == destino:
        raise ErroValidacao(f"A turma já está em '{destino.value}'.")
    if forcar:
        return
    if destino not in TRANSICOES[origem]:
        raise ErroValidacao(f"Transição inválida: '{origem.value}' -> '{destino.value}'.")


def aceita_inscricoes(status) -> bool:
    try:
        return StatusTurma(status) in STATUS_ABERTOS_PARA_INSCRICAO
    except ValueError:
        return False


def _agora() -> datetime:
    return datetime.now(timezone.utc)


# === REGRAS DE AVANÇO AUTOMÁTICO ===

def destino_abertura(turma: dict, agora: datetime) -> Optional[StatusTurma]:
    status = status_de(turma.get('status'))
    inicio = turma.get('inicio_em')
    abertura = turma.get('abertura_inscricoes_em')

    if status in (StatusTurma.AGENDADA, StatusTurma.INSCRICOES_ABERTAS, StatusTurma.INSCRICOES_ENCERRADAS):
        if inicio and inicio <= agora:
            return StatusTurma.EM_ANDAMENTO
    if status == StatusTurma.AGENDADA and abertura and abertura <= agora:
        return StatusTurma.INSCRICOES_ABERTAS
    return None


def destino_encerramento(turma: dict, agora: datetime) -> Optional[StatusTurma]:
    status = status_de(turma.get('status'))
    prazo = turma.get('prazo_conclusao')
    if status in STATUS_TERMINAIS or status == StatusTurma.AGENDADA:
        return None
    if prazo and prazo <= agora:
        return StatusTurma.ENCERRADA
    return None


# === EXECUÇÃO ===

@dataclass
class ResultadoAvanco:
    operacao: str
    alteradas: List[Tuple[str, str, str]] = field(default_factory=list)
    concorrentes: int = 0

    def para_dict(self) -> dict:
        return {
            'operacao': self.operacao,
            'alteradas': [
                {'turma_id': tid, 'de': de, 'para': para} for tid, de, para in self.alteradas
            ],
            'concorrentes': self.concorrentes,
        }


def aplicar_transicao_condicional(snapshot, destino: StatusTurma, agora: datetime,
                                  extras: Optional[dict] = None) -> bool:
    """
    Grava a transição apenas se o documento não mudou desde `snapshot`.
    Retorna False quando outro processo chegou antes.
    """
    db = database.get_db()
    origem = snapshot.to_dict().get('status')
    validar_transicao(origem, destino)

    atualizacao = {
        'status': destino.value,
        'status_anterior': origem,
        'atualizado_em': agora,
        **(extras or {}),
    }
    try:
        snapshot.reference.update(
            atualizacao,
            option=db.write_option(last_update_time=snapshot.update_time),
        )
    except (FailedPrecondition, NotFound):
        logger.info(f"Turma {snapshot.id} alterada por outro processo; transição '{destino.value}' ignorada.")
        return False
    return True


def _avancar(operacao: str, origens, campo_data: str,
             regra: Callable[[dict, datetime], Optional[StatusTurma]],
             agora: datetime) -> ResultadoAvanco:
    db = database.get_db()
    resultado = ResultadoAvanco(operacao=operacao)

    for origem in origens:
        consulta = (
            db.collection(COLECAO_TURMAS)
            .where('status', '==', origem.value)
            .where(campo_data, '<=', agora)
        )
        for snapshot in consulta.stream():
            destino = regra(snapshot.to_dict(), agora)
            if destino is None:
                continue
            if aplicar_transicao_condicional(snapshot, destino, agora):
                resultado.alteradas.append((snapshot.id, origem.value, destino.value))
                logger.info(f"Turma {snapshot.id}: {origem.value} -> {destino.value}")
            else:
                resultado.concorrentes += 1

    return resultado


def avancar_turmas_abertura(agora: Optional[datetime] = None) -> ResultadoAvanco:
    """Abre inscrições e inicia turmas cujo horário já chegou."""
    agora = agora or _agora()
    resultado = _avancar(
        'abertura', [StatusTurma.AGENDADA], 'abertura_inscricoes_em', destino_abertura, agora,
    )
    parcial = _avancar(
        'abertura',
        [StatusTurma.AGENDADA, StatusTurma.INSCRICOES_ABERTAS, StatusTurma.INSCRICOES_ENCERRADAS],
        'inicio_em', destino_abertura, agora,
    )
    resultado.alteradas.extend(parcial.alteradas)
    resultado.concorrentes += parcial.concorrentes
    return resultado


def avancar_turmas_encerramento(agora: Optional[datetime] = None) -> ResultadoAvanco:
    """Encerra turmas abertas ou em andamento cujo prazo de conclusão passou."""
    agora = agora or _agora()
    return _avancar(
        'encerramento',
        [StatusTurma.INSCRICOES_ABERTAS, StatusTurma.EM_ANDAMENTO, StatusTurma.INSCRICOES_ENCERRADAS],
        'prazo_conclusao', destino_encerramento, agora,
    )


def executar_ciclo(agora: Optional[datetime] = None) -> dict:
    """
    Roda abertura e encerramento de forma independente.
    Nunca levanta exceção: a falha de uma etapa é registrada e a outra segue.
    """
    agora = agora or _agora()
    logger.info(f"Executando ciclo de turmas em {agora.isoformat()}")

    resumo = {'executado_em': agora.isoformat(), 'success': True}
    for nome, operacao in (('abertura', avancar_turmas_abertura),
                           ('encerramento', avancar_turmas_encerramento)):
        try:
            resumo[nome] = operacao(agora).para_dict()
        except Exception as e:
            logger.error(f"Erro na etapa de {nome} do ciclo de turmas: {e}", exc_info=True)
            resumo[nome] = {'operacao': nome, 'erro': str(e)}
            resumo['success'] = False

    return resumo
