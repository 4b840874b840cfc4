"""
Camada de Serviço (Service Layer) das Matrículas

Admissão de alunos em cursos/turmas, presença, conclusão de aulas gravadas
e o progresso derivado delas.

Regras principais:
- Uma matrícula por (e-mail do aluno, curso). O id do documento é derivado
  desse par e criado com `create()`, então uma segunda admissão, mesmo
  simultânea, devolve a matrícula existente em vez de duplicar.
- Turma só aceita novas matrículas em status aberto.
- O progresso nunca diminui: o valor gravado é o maior entre o anterior
  e o recalculado.
"""

import hashlib
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from flask import current_app
from google.api_core.exceptions import AlreadyExists, FailedPrecondition

from treinamento.core import database
from treinamento.core.constants import (
    AULA_CONCLUIDA,
    COLECAO_AULAS,
    COLECAO_CURSOS,
    COLECAO_MATRICULAS,
    COLECAO_PRESENCAS,
    COLECAO_PROGRESSO_AULAS,
    COLECAO_UNIDADES,
    CURSO_ARQUIVADO,
    CURSO_GRAVADO,
    MATRICULA_ATIVA,
)
from treinamento.core.erros import ErroAutorizacao, ErroNaoEncontrado, ErroValidacao
from treinamento.core.logger import get_logger
from treinamento.auth.services import normalizar_email, obter_usuario
from treinamento.turmas.ciclo_vida import aceita_inscricoes
from treinamento.turmas.services import obter_turma

logger = get_logger(__name__)

TENTATIVAS_PROGRESSO = 3


def id_matricula(email: str, curso_id: str) -> str:
    chave = f"{normalizar_email(email)}|{curso_id}".encode('utf-8')
    return hashlib.sha256(chave).hexdigest()[:32]


def _agora() -> datetime:
    return datetime.now(timezone.utc)


# === CONSULTAS ===

def obter_matricula(matricula_id: str) -> dict:
    snapshot = database.get_db().collection(COLECAO_MATRICULAS).document(matricula_id).get()
    matricula = database.snapshot_para_dict(snapshot)
    if not matricula:
        raise ErroNaoEncontrado(f"Matrícula '{matricula_id}' não encontrada.")
    return matricula


def obter_curso(curso_id: str) -> dict:
    snapshot = database.get_db().collection(COLECAO_CURSOS).document(curso_id).get()
    curso = database.snapshot_para_dict(snapshot)
    if not curso:
        raise ErroNaoEncontrado(f"Curso '{curso_id}' não encontrado.")
    return curso


def resolver_curso(curso_id: Optional[str] = None, curso_nome: Optional[str] = None) -> dict:
    """Curso pelo id ou pelo nome exato, sem diferenciar maiúsculas."""
    if curso_id:
        return obter_curso(curso_id)

    nome = (curso_nome or '').strip().lower()
    docs = (
        database.get_db().collection(COLECAO_CURSOS)
        .where('nome_normalizado', '==', nome)
        .limit(1)
        .stream()
    )
    for doc in docs:
        return database.snapshot_para_dict(doc)
    raise ErroNaoEncontrado("Curso não encontrado pelo nome informado.")


def listar_matriculas_do_aluno(usuario_id: str) -> List[dict]:
    """
    Matrículas vinculadas ao id do usuário ou ao seu e-mail (matrículas
    criadas pelo webhook antes de o aluno ter cadastro).
    """
    db = database.get_db()
    encontradas = {}
    for doc in db.collection(COLECAO_MATRICULAS).where('aluno_id', '==', usuario_id).stream():
        encontradas[doc.id] = database.snapshot_para_dict(doc)

    usuario = obter_usuario(usuario_id) or {}
    email = normalizar_email(usuario.get('email'))
    if email:
        for doc in db.collection(COLECAO_MATRICULAS).where('aluno_email', '==', email).stream():
            encontradas.setdefault(doc.id, database.snapshot_para_dict(doc))

    return sorted(encontradas.values(), key=lambda m: m.get('curso_id') or '')


def _contar(consulta) -> int:
    return sum(1 for _ in consulta.stream())


# === ADMISSÃO ===

def _validar_turma_para_inscricao(turma: dict, curso_id: str) -> None:
    if turma.get('curso_id') != curso_id:
        raise ErroValidacao("A turma informada não pertence a este curso.")
    if not aceita_inscricoes(turma.get('status')):
        raise ErroValidacao(f"A turma não está aberta para inscrições (status: {turma.get('status')}).")

    capacidade = turma.get('capacidade')
    if capacidade:
        ocupadas = _contar(
            database.get_db().collection(COLECAO_MATRICULAS).where('turma_id', '==', turma['id'])
        )
        if ocupadas >= capacidade:
            raise ErroValidacao("A turma está com todas as vagas preenchidas.")


def admitir_matricula(dados: dict, criado_por: Optional[str] = None) -> Tuple[dict, bool]:
    """
    Admite um aluno em um curso (e opcionalmente em uma turma).

    Args:
        dados: aluno_nome, aluno_email, aluno_telefone, aluno_id,
               curso_id ou curso_nome, turma_id, unidade_codigo, status.
        criado_por: id de quem originou a admissão (admin, aluno ou integração).

    Returns:
        (matricula, criada), com criada=False quando a matrícula já existia.
    """
    aluno_id = (dados.get('aluno_id') or '').strip() or None
    nome = (dados.get('aluno_nome') or '').strip()
    email = normalizar_email(dados.get('aluno_email'))
    telefone = (dados.get('aluno_telefone') or '').strip() or None

    if aluno_id and (not nome or not email):
        usuario = obter_usuario(aluno_id)
        if not usuario:
            raise ErroNaoEncontrado(f"Aluno '{aluno_id}' não encontrado.")
        nome = nome or usuario.get('nome', '')
        email = email or normalizar_email(usuario.get('email'))
        telefone = telefone or usuario.get('telefone')

    curso_id = (dados.get('curso_id') or '').strip()
    curso_nome = (dados.get('curso_nome') or '').strip()
    if not nome or not email or not (curso_id or curso_nome):
        raise ErroValidacao("Campos obrigatórios: aluno_nome, aluno_email e (curso_id ou curso_nome)")
    if not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', email):
        raise ErroValidacao(f"E-mail inválido: {email}")

    curso = resolver_curso(curso_id, curso_nome)

    unidade_codigo = (str(dados.get('unidade_codigo') or '')).strip() or None
    db = database.get_db()
    if unidade_codigo and not db.collection(COLECAO_UNIDADES).document(unidade_codigo).get().exists:
        raise ErroNaoEncontrado(f"Unidade '{unidade_codigo}' não encontrada.")

    doc_ref = db.collection(COLECAO_MATRICULAS).document(id_matricula(email, curso['id']))
    existente = doc_ref.get()
    if existente.exists:
        logger.info(f"Matrícula já existente para {email} no curso {curso['id']}; nada a fazer.")
        return database.snapshot_para_dict(existente), False

    if curso.get('status') == CURSO_ARQUIVADO:
        raise ErroValidacao("Curso arquivado não aceita novas matrículas.")

    turma_id = (dados.get('turma_id') or '').strip() or None
    if turma_id:
        _validar_turma_para_inscricao(obter_turma(turma_id), curso['id'])

    nova = {
        'aluno_id': aluno_id,
        'aluno_nome': nome,
        'aluno_email': email,
        'aluno_telefone': telefone,
        'curso_id': curso['id'],
        'turma_id': turma_id,
        'unidade_codigo': unidade_codigo,
        'status': dados.get('status') or MATRICULA_ATIVA,
        'progresso_percentual': 0,
        'matriculado_em': _agora(),
        'criado_por': criado_por,
    }
    try:
        doc_ref.create(nova)
    except AlreadyExists:
        # Outra admissão simultânea venceu; a dela é a matrícula válida
        logger.info(f"Matrícula de {email} no curso {curso['id']} criada em paralelo; usando a existente.")
        return database.snapshot_para_dict(doc_ref.get()), False

    logger.info(f"Matrícula criada: {doc_ref.id} ({email} -> curso {curso['id']}, turma {turma_id})")
    nova['id'] = doc_ref.id
    return nova, True


def vincular_turma(matricula_id: str, turma_id: str) -> dict:
    matricula = obter_matricula(matricula_id)
    if matricula.get('turma_id') == turma_id:
        return matricula

    _validar_turma_para_inscricao(obter_turma(turma_id), matricula['curso_id'])
    database.get_db().collection(COLECAO_MATRICULAS).document(matricula_id).update({'turma_id': turma_id})
    logger.info(f"Matrícula {matricula_id} vinculada à turma {turma_id}")
    matricula['turma_id'] = turma_id
    return matricula


# === PRESENÇA E PROGRESSO ===

def normalizar_palavra_chave(texto: str) -> str:
    return re.sub(r'\s+', ' ', (texto or '').strip().lower())


def _obter_aula(aula_id: str, curso_id: str) -> dict:
    snapshot = database.get_db().collection(COLECAO_AULAS).document(aula_id).get()
    aula = database.snapshot_para_dict(snapshot)
    if not aula:
        raise ErroNaoEncontrado(f"Aula '{aula_id}' não encontrada.")
    if aula.get('curso_id') != curso_id:
        raise ErroValidacao("A aula não pertence ao curso desta matrícula.")
    return aula


def verificar_dono(matricula: dict, usuario_id: str) -> None:
    if matricula.get('aluno_id') == usuario_id:
        return
    usuario = None if matricula.get('aluno_id') else obter_usuario(usuario_id)
    if not usuario or normalizar_email(usuario.get('email')) != matricula.get('aluno_email'):
        raise ErroAutorizacao("Esta matrícula pertence a outro aluno.")


def registrar_presenca(matricula_id: str, aula_id: str, usuario_id: str,
                       palavra_chave: Optional[str] = None) -> dict:
    """
    Marca presença do aluno em uma aula ao vivo. Repetir a marcação é
    inofensivo. Aulas ativas (ou com palavra-chave própria) exigem a
    palavra-chave informada pelo professor.
    """
    matricula = obter_matricula(matricula_id)
    verificar_dono(matricula, usuario_id)
    aula = _obter_aula(aula_id, matricula['curso_id'])

    if aula.get('status') == 'Ativo' or aula.get('palavra_chave'):
        if not palavra_chave:
            raise ErroValidacao("Esta aula requer uma palavra-chave para confirmação de presença.")
        esperada = aula.get('palavra_chave') or current_app.config.get('PALAVRA_CHAVE_PADRAO', '')
        if normalizar_palavra_chave(palavra_chave) != normalizar_palavra_chave(esperada):
            raise ErroValidacao("Palavra-chave incorreta. Verifique com o professor e tente novamente.")

    if not matricula.get('turma_id'):
        raise ErroValidacao("Não foi possível encontrar a turma desta inscrição.")

    presenca_ref = database.get_db().collection(COLECAO_PRESENCAS).document(f"{matricula_id}_{aula_id}")
    nova = True
    try:
        presenca_ref.create({
            'matricula_id': matricula_id,
            'aula_id': aula_id,
            'turma_id': matricula['turma_id'],
            'usuario_id': usuario_id,
            'tipo': 'manual',
            'registrado_em': _agora(),
        })
    except AlreadyExists:
        nova = False

    progresso = recalcular_progresso(matricula_id)
    return {'presenca_registrada': nova, 'progresso_percentual': progresso}


def concluir_aula_gravada(matricula_id: str, aula_id: str, usuario_id: str) -> dict:
    matricula = obter_matricula(matricula_id)
    verificar_dono(matricula, usuario_id)
    curso = obter_curso(matricula['curso_id'])
    if curso.get('tipo') != CURSO_GRAVADO:
        raise ErroValidacao("Apenas cursos gravados registram conclusão de aula.")
    _obter_aula(aula_id, curso['id'])

    database.get_db().collection(COLECAO_PROGRESSO_AULAS).document(f"{matricula_id}_{aula_id}").set({
        'matricula_id': matricula_id,
        'aula_id': aula_id,
        'status': AULA_CONCLUIDA,
        'concluido_em': _agora(),
    })
    return {'progresso_percentual': recalcular_progresso(matricula_id)}


def calcular_progresso(matricula: dict, curso: dict) -> int:
    db = database.get_db()
    total_aulas = _contar(db.collection(COLECAO_AULAS).where('curso_id', '==', curso['id']))

    if curso.get('tipo') == CURSO_GRAVADO:
        feitas = _contar(
            db.collection(COLECAO_PROGRESSO_AULAS)
            .where('matricula_id', '==', matricula['id'])
            .where('status', '==', AULA_CONCLUIDA)
        )
    else:
        total_aulas = curso.get('total_aulas') or total_aulas
        feitas = _contar(db.collection(COLECAO_PRESENCAS).where('matricula_id', '==', matricula['id']))

    if not total_aulas:
        return 0
    return max(0, min(100, round(feitas / total_aulas * 100)))


def recalcular_progresso(matricula_id: str) -> int:
    """
    Recalcula e grava o progresso. O valor gravado nunca é menor que o anterior.
    """
    db = database.get_db()
    doc_ref = db.collection(COLECAO_MATRICULAS).document(matricula_id)

    for _ in range(TENTATIVAS_PROGRESSO):
        snapshot = doc_ref.get()
        matricula = database.snapshot_para_dict(snapshot)
        if not matricula:
            raise ErroNaoEncontrado(f"Matrícula '{matricula_id}' não encontrada.")

        anterior = matricula.get('progresso_percentual') or 0
        novo = max(anterior, calcular_progresso(matricula, obter_curso(matricula['curso_id'])))
        if novo == anterior:
            return anterior

        try:
            doc_ref.update(
                {'progresso_percentual': novo, 'progresso_atualizado_em': _agora()},
                option=db.write_option(last_update_time=snapshot.update_time),
            )
            return novo
        except FailedPrecondition:
            logger.info(f"Matrícula {matricula_id} alterada durante o recálculo; relendo.")

    logger.warning(f"Recálculo de progresso da matrícula {matricula_id} desistiu após {TENTATIVAS_PROGRESSO} tentativas.")
    return database.snapshot_para_dict(doc_ref.get()).get('progresso_percentual') or 0
