"""
Módulo de Integração com Google Cloud Storage (Service Layer)

Responsável por guardar os certificados renderizados e gerar links
de acesso temporário a eles.
"""

from datetime import timedelta
from typing import Optional
from google.cloud import storage
from flask import current_app

from treinamento.core.logger import get_logger

logger = get_logger(__name__)

URL_PUBLICA_GCS = 'https://storage.googleapis.com'


def _get_client() -> storage.Client:
    return storage.Client(project=current_app.config['GOOGLE_CLOUD_PROJECT'])


def _bucket_certificados() -> storage.Bucket:
    bucket_name = current_app.config.get('GCS_BUCKET_CERTIFICADOS')
    if not bucket_name:
        raise ValueError("GCS_BUCKET_CERTIFICADOS não configurado")
    return _get_client().bucket(bucket_name)


def url_do_objeto(nome_blob: str) -> str:
    """URL longa e estável do objeto no bucket de certificados."""
    bucket_name = current_app.config.get('GCS_BUCKET_CERTIFICADOS')
    return f"{URL_PUBLICA_GCS}/{bucket_name}/{nome_blob}"


def upload_bytes(conteudo: bytes, nome_blob: str, content_type: str = 'application/pdf') -> str:
    """
    Grava (ou sobrescreve) o objeto e retorna sua URL longa.
    O objeto NÃO é tornado público; o acesso passa por Signed URL.
    """
    blob = _bucket_certificados().blob(nome_blob)
    blob.cache_control = 'private, max-age=3600'
    blob.upload_from_string(conteudo, content_type=content_type)
    logger.info(f"Objeto gravado no Storage: {nome_blob}")
    return url_do_objeto(nome_blob)


def generate_signed_url(nome_blob: str, expiration: int = 3600) -> Optional[str]:
    """
    Gera uma Signed URL temporária para acesso seguro ao arquivo.
    Args:
        nome_blob: ID interno do arquivo no GCS.
        expiration: Tempo em segundos (padrão 1 hora).
    """
    try:
        blob = _bucket_certificados().blob(nome_blob)
        return blob.generate_signed_url(
            version="v4",
            expiration=timedelta(seconds=expiration),
            method="GET"
        )
    except Exception as e:
        logger.error(f"Erro ao gerar Signed URL para {nome_blob}: {e}", exc_info=True)
        return None

