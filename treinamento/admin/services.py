"""
Camada de Serviço (Service Layer) do Módulo Admin

Disparo de mensagens de WhatsApp para os matriculados de um curso.
"""

from datetime import datetime, timezone
from typing import List, Optional

from flask import current_app

from treinamento.core import database, whatsapp
from treinamento.core.constants import COLECAO_DISPAROS_WHATSAPP, COLECAO_MATRICULAS
from treinamento.core.erros import ErroDependenciaExterna, ErroValidacao
from treinamento.core.fila import ERRO, IGNORADO, SUCESSO, FilaLimitada, ResultadoItem, fila_da_config, resumo
from treinamento.core.logger import get_logger
from treinamento.matriculas.services import obter_curso

logger = get_logger(__name__)


def _status_do_disparo(contagem: dict) -> str:
    if contagem[ERRO] == 0:
        return 'enviado'
    return 'parcial' if contagem[SUCESSO] > 0 else 'erro'


def disparar_mensagem(curso_id: str, mensagem: str, matricula_ids: Optional[List[str]] = None,
                      criado_por: Optional[str] = None, fila: Optional[FilaLimitada] = None) -> dict:
    """
    Envia `mensagem` aos matriculados do curso (ou só aos `matricula_ids`
    informados) respeitando o ritmo da fila. Matrículas sem telefone são
    ignoradas. O resumo do disparo fica registrado.
    """
    if not (mensagem or '').strip():
        raise ErroValidacao("Campos obrigatórios: curso_id e mensagem.")
    if not whatsapp.whatsapp_configurado():
        raise ErroDependenciaExterna("WhatsApp não configurado. Defina ZAPI_INSTANCE_ID e ZAPI_TOKEN.")

    curso = obter_curso(curso_id)
    db = database.get_db()
    matriculas = [
        database.snapshot_para_dict(doc)
        for doc in db.collection(COLECAO_MATRICULAS).where('curso_id', '==', curso['id']).stream()
    ]
    if matricula_ids:
        selecionadas = set(matricula_ids)
        matriculas = [m for m in matriculas if m['id'] in selecionadas]

    def tarefa(matricula):
        telefone = whatsapp.normalizar_telefone(matricula.get('aluno_telefone'))
        if not telefone:
            return ResultadoItem(item=matricula['id'], status=IGNORADO, motivo="Matrícula sem telefone",
                                 dados={'matricula_id': matricula['id']})
        whatsapp.enviar_texto(telefone, mensagem)
        return {'matricula_id': matricula['id'], 'telefone': telefone}

    fila = fila or fila_da_config(current_app.config)
    resultados = fila.executar(matriculas, tarefa)
    for resultado in resultados:
        if resultado.status == ERRO:
            resultado.dados.setdefault('matricula_id', resultado.item['id'])

    contagem = resumo(resultados)
    status = _status_do_disparo(contagem)
    _, doc_ref = db.collection(COLECAO_DISPAROS_WHATSAPP).add({
        'curso_id': curso['id'],
        'curso_nome': curso.get('nome'),
        'mensagem': mensagem,
        'destinatarios': contagem['total'] - contagem[IGNORADO],
        'entregues': contagem[SUCESSO],
        'falhas': contagem[ERRO],
        'status': status,
        'criado_por': criado_por,
        'criado_em': datetime.now(timezone.utc),
    })
    logger.info(f"Disparo {doc_ref.id} do curso {curso['id']}: {contagem}")

    return {
        'disparo_id': doc_ref.id,
        'status': status,
        'resumo': contagem,
        'resultados': [r.para_dict() for r in resultados],
    }
