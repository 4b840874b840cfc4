"""
Camada de Serviço (Service Layer) dos Certificados

Emissão em seis etapas, nesta ordem:
    1. registro          cria o documento do certificado (gera o id)
    2. reserva_codigo    reserva um código curto livre para o certificado
    3. renderizacao      monta o PDF com o QR Code do link curto
    4. armazenamento     grava o PDF no Storage
    5. redirecionamento  aponta o código reservado para o arquivo
    6. atualizacao       grava arquivo e links no certificado

Falha em qualquer etapa vira ErroCertificado com o nome da etapa. Não há
desfazer: um registro que ficou em 'gerando' vai para conciliação manual,
e novas solicitações para a matrícula respondem 409 até lá.
"""

import re
import unicodedata
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from flask import current_app
from google.api_core.exceptions import AlreadyExists

from treinamento.core import database, storage
from treinamento.core.certificado_pdf import formatar_carga_horaria, renderizar_certificado
from treinamento.core.constants import (
    AULA_CONCLUIDA,
    COLECAO_AULAS,
    COLECAO_CERTIFICADOS,
    COLECAO_PRESENCAS,
    COLECAO_PROGRESSO_AULAS,
    COLECAO_REDIRECIONAMENTOS,
    CERTIFICADO_EMITIDO,
    CERTIFICADO_GERANDO,
    CURSO_GRAVADO,
)
from treinamento.core.encurtador import gerar_slug, url_curta_para
from treinamento.core.erros import (
    ErroAutorizacao,
    ErroCertificado,
    ErroConflito,
    ErroNaoEncontrado,
    ErroValidacao,
)
from treinamento.core.logger import get_logger
from treinamento.auth.permissoes import pode_editar
from treinamento.auth.services import normalizar_email, obter_usuario
from treinamento.matriculas.services import obter_curso, obter_matricula, verificar_dono

logger = get_logger(__name__)

FUSO_EMISSAO = ZoneInfo('America/Sao_Paulo')
TENTATIVAS_SLUG = 5


def limpar_nome_para_id(texto):
    if not texto: return ""
    nfkd_form = unicodedata.normalize('NFKD', texto)
    texto_ascii = "".join([c for c in nfkd_form if not unicodedata.combining(c)])
    return re.sub(r'[^a-zA-Z0-9\.\-_]', '_', texto_ascii)


def nome_do_arquivo(nome_aluno: str, certificado_id: str) -> str:
    return f"certificados/Certificado_{limpar_nome_para_id(nome_aluno)}_{certificado_id}.pdf"


def buscar_certificado_da_matricula(matricula_id: str) -> Optional[dict]:
    docs = (
        database.get_db().collection(COLECAO_CERTIFICADOS)
        .where('matricula_id', '==', matricula_id)
        .limit(1)
        .stream()
    )
    for doc in docs:
        return database.snapshot_para_dict(doc)
    return None


def listar_certificados_do_aluno(usuario_id: str) -> List[dict]:
    """Certificados do usuário, inclusive os de matrículas feitas só com o e-mail."""
    colecao = database.get_db().collection(COLECAO_CERTIFICADOS)
    encontrados = {}
    for doc in colecao.where('usuario_id', '==', usuario_id).stream():
        encontrados[doc.id] = database.snapshot_para_dict(doc)

    email = normalizar_email((obter_usuario(usuario_id) or {}).get('email'))
    if email:
        for doc in colecao.where('aluno_email', '==', email).stream():
            encontrados.setdefault(doc.id, database.snapshot_para_dict(doc))

    return list(encontrados.values())


def aulas_concluidas_da_matricula(matricula: dict, curso: dict) -> List[dict]:
    """Aulas assistidas (curso ao vivo) ou concluídas (curso gravado)."""
    db = database.get_db()
    if curso.get('tipo') == CURSO_GRAVADO:
        consulta = (
            db.collection(COLECAO_PROGRESSO_AULAS)
            .where('matricula_id', '==', matricula['id'])
            .where('status', '==', AULA_CONCLUIDA)
        )
    else:
        consulta = db.collection(COLECAO_PRESENCAS).where('matricula_id', '==', matricula['id'])

    aulas = []
    for doc in consulta.stream():
        aula = database.snapshot_para_dict(
            db.collection(COLECAO_AULAS).document(doc.to_dict()['aula_id']).get()
        )
        if aula:
            aulas.append(aula)
    return aulas


def _reservar_slug(certificado_id: str, agora: datetime) -> str:
    """Cria o documento do código curto; create() falha se outro já o ocupou."""
    colecao = database.get_db().collection(COLECAO_REDIRECIONAMENTOS)
    for _ in range(TENTATIVAS_SLUG):
        slug = gerar_slug()
        try:
            colecao.document(slug).create({'certificado_id': certificado_id, 'criado_em': agora})
            return slug
        except AlreadyExists:
            logger.warning(f"Código curto {slug} já em uso, sorteando outro")
    raise RuntimeError(f"Nenhum código curto livre em {TENTATIVAS_SLUG} tentativas.")


def emitir_certificado(matricula: dict, aulas_concluidas: List[dict]) -> dict:
    """
    Emite o certificado de uma matrícula concluída. Quem chama decide se
    a matrícula está concluída e se já existe certificado.
    """
    db = database.get_db()
    curso = obter_curso(matricula['curso_id'])
    agora = datetime.now(timezone.utc)

    # 1. Registro
    try:
        _, doc_ref = db.collection(COLECAO_CERTIFICADOS).add({
            'matricula_id': matricula['id'],
            'usuario_id': matricula.get('aluno_id'),
            'aluno_email': matricula.get('aluno_email'),
            'curso_id': curso['id'],
            'turma_id': matricula.get('turma_id'),
            'gerado_em': agora,
            'status': CERTIFICADO_GERANDO,
        })
    except Exception as e:
        logger.error(f"Falha ao registrar certificado da matrícula {matricula['id']}: {e}", exc_info=True)
        raise ErroCertificado('registro', str(e)) from e
    certificado_id = doc_ref.id

    # 2. Reserva do código curto
    try:
        slug = _reservar_slug(certificado_id, agora)
    except Exception as e:
        logger.error(f"Falha ao reservar código curto do certificado {certificado_id}: {e}", exc_info=True)
        raise ErroCertificado('reserva_codigo', str(e), certificado_id) from e

    # 3. Renderização
    try:
        url_curta = url_curta_para(slug)
        minutos = sum(int(a.get('duracao_minutos') or 0) for a in aulas_concluidas)
        pdf = renderizar_certificado(
            nome=matricula.get('aluno_nome', ''),
            curso=curso.get('nome', ''),
            data=agora.astimezone(FUSO_EMISSAO).strftime('%d/%m/%Y'),
            carga_horaria=formatar_carga_horaria(minutos),
            url_verificacao=url_curta,
            fundo=current_app.config.get('CERTIFICADO_FUNDO'),
        )
    except Exception as e:
        logger.error(f"Falha ao renderizar certificado {certificado_id}: {e}", exc_info=True)
        raise ErroCertificado('renderizacao', str(e), certificado_id) from e

    # 4. Armazenamento
    arquivo = nome_do_arquivo(matricula.get('aluno_nome', ''), certificado_id)
    try:
        url_longa = storage.upload_bytes(pdf, arquivo)
    except Exception as e:
        logger.error(f"Falha ao gravar certificado {certificado_id} no Storage: {e}", exc_info=True)
        raise ErroCertificado('armazenamento', str(e), certificado_id) from e

    # 5. Redirecionamento
    try:
        db.collection(COLECAO_REDIRECIONAMENTOS).document(slug).update({
            'url_longa': url_longa,
            'arquivo': arquivo,
        })
    except Exception as e:
        logger.error(f"Falha ao registrar o código curto {slug}: {e}", exc_info=True)
        raise ErroCertificado('redirecionamento', str(e), certificado_id) from e

    # 6. Atualização
    atualizacao = {
        'arquivo': arquivo,
        'url': url_longa,
        'url_curta': url_curta,
        'status': CERTIFICADO_EMITIDO,
    }
    try:
        doc_ref.update(atualizacao)
    except Exception as e:
        logger.error(f"Falha ao atualizar certificado {certificado_id}: {e}", exc_info=True)
        raise ErroCertificado('atualizacao', str(e), certificado_id) from e

    logger.info(f"Certificado {certificado_id} emitido para a matrícula {matricula['id']}")
    return {
        'id': certificado_id,
        'matricula_id': matricula['id'],
        'usuario_id': matricula.get('aluno_id'),
        'aluno_email': matricula.get('aluno_email'),
        'curso_id': curso['id'],
        'turma_id': matricula.get('turma_id'),
        'gerado_em': agora,
        **atualizacao,
    }


def solicitar_certificado(matricula_id: str, solicitante_id: str) -> Tuple[dict, bool]:
    """
    Devolve (certificado, criado). Se a matrícula já tem certificado, ele é
    devolvido sem nova emissão. Um certificado que parou no meio da emissão
    não é reemitido: ErroConflito até a conciliação manual.
    """
    matricula = obter_matricula(matricula_id)
    if not pode_editar(solicitante_id, 'certificates'):
        try:
            verificar_dono(matricula, solicitante_id)
        except ErroAutorizacao:
            raise ErroAutorizacao("Sem permissão para solicitar este certificado.")

    existente = buscar_certificado_da_matricula(matricula_id)
    if existente:
        if existente.get('status') != CERTIFICADO_EMITIDO:
            raise ErroConflito(
                f"O certificado {existente['id']} ficou incompleto "
                f"(status '{existente.get('status')}') e aguarda conciliação manual."
            )
        return existente, False

    if (matricula.get('progresso_percentual') or 0) < 100:
        raise ErroValidacao("O curso ainda não foi concluído.")

    curso = obter_curso(matricula['curso_id'])
    certificado = emitir_certificado(matricula, aulas_concluidas_da_matricula(matricula, curso))
    return certificado, True


def resolver_redirecionamento(slug: str) -> str:
    """URL de destino de um código curto: Signed URL nova ou a URL guardada."""
    snapshot = database.get_db().collection(COLECAO_REDIRECIONAMENTOS).document(slug).get()
    if not snapshot.exists:
        raise ErroNaoEncontrado("URL não encontrada.")

    dados = snapshot.to_dict()
    if not dados.get('url_longa'):
        # Código reservado por uma emissão que não chegou ao fim
        raise ErroNaoEncontrado("URL não encontrada.")
    if dados.get('arquivo'):
        assinada = storage.generate_signed_url(dados['arquivo'])
        if assinada:
            return assinada
    return dados['url_longa']
