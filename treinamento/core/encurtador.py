"""
Encurtamento de URLs.

Dois caminhos: o serviço externo encurtador.dev, para links avulsos, e
os códigos curtos próprios usados nos QR Codes de certificados, que
ficam na coleção de redirecionamentos.
"""

import secrets
import string

import requests
from flask import current_app

from treinamento.core.erros import ErroDependenciaExterna, ErroValidacao
from treinamento.core.logger import get_logger

logger = get_logger(__name__)

ALFABETO_SLUG = string.ascii_lowercase + string.digits
TAMANHO_SLUG = 6


def gerar_slug(tamanho: int = TAMANHO_SLUG) -> str:
    return ''.join(secrets.choice(ALFABETO_SLUG) for _ in range(tamanho))


def url_curta_para(slug: str) -> str:
    return f"{current_app.config['URL_BASE_PUBLICA']}/r/{slug}"


def encurtar_url(url_longa: str) -> str:
    """Encurta uma URL pelo encurtador.dev e devolve a URL curta com esquema."""
    if not url_longa:
        raise ErroValidacao("A URL para encurtar é obrigatória.")

    try:
        resposta = requests.post(
            current_app.config['ENCURTADOR_URL'],
            json={'url': url_longa},
            timeout=current_app.config.get('HTTP_TIMEOUT', 10),
        )
    except requests.RequestException as e:
        logger.error(f"Erro de rede no encurtador: {e}")
        raise ErroDependenciaExterna("Falha de comunicação com o encurtador.") from e

    if not resposta.ok:
        logger.error(f"Encurtador retornou {resposta.status_code}: {resposta.text[:200]}")
        raise ErroDependenciaExterna(f"A API de encurtamento retornou um erro: {resposta.status_code}")

    encurtada = resposta.json().get('urlEncurtada')
    if not encurtada:
        raise ErroDependenciaExterna("A API de encurtamento não devolveu a URL.")
    return encurtada if encurtada.startswith('http') else f"https://{encurtada}"
