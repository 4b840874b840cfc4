"""
Módulo de Configuração (Blindado)

Define a classe de configuração principal. Implementa o padrão 'Fail Fast':
se uma variável crítica estiver faltando, a aplicação nem inicia.
Integrações opcionais apenas geram aviso e desativam o recurso correspondente.
"""

import os
from dotenv import load_dotenv

from treinamento.core.logger import get_logger

# Carrega variáveis do arquivo .env
load_dotenv()

logger = get_logger(__name__)

# Em produção o transporte inseguro do OAuth nunca deve ser liberado.
if os.environ.get('FLASK_DEBUG') == '1':
    os.environ['OAUTHLIB_INSECURE_TRANSPORT'] = '1'


class Config:
    """
    Classe de configuração base da aplicação.
    """

    # === SEGURANÇA CRÍTICA (Fail Fast) ===
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        raise ValueError("ERRO CRÍTICO: 'SECRET_KEY' não encontrada no .env. A aplicação não pode iniciar insegura.")

    # Segredos compartilhados com chamadores externos (webhook e agendador).
    # Sem eles, os endpoints correspondentes recusam todas as chamadas.
    WEBHOOK_SECRET = os.environ.get('WEBHOOK_SECRET', '').strip()
    CRON_SECRET = os.environ.get('CRON_SECRET', '').strip()

    if not WEBHOOK_SECRET:
        logger.warning("'WEBHOOK_SECRET' ausente. O webhook de matrículas recusará todas as chamadas.")
    if not CRON_SECRET:
        logger.warning("'CRON_SECRET' ausente. O ciclo automático de turmas só rodará via script.")

    # === GOOGLE CLOUD (Firestore & Storage) ===
    GOOGLE_CLOUD_PROJECT = os.environ.get('GOOGLE_CLOUD_PROJECT')
    GCS_BUCKET_CERTIFICADOS = os.environ.get('GCS_BUCKET_CERTIFICADOS')

    if not GCS_BUCKET_CERTIFICADOS:
        logger.warning("'GCS_BUCKET_CERTIFICADOS' não configurado. A emissão de certificados falhará.")

    # === WHATSAPP (Z-API) ===
    ZAPI_INSTANCE_ID = os.environ.get('ZAPI_INSTANCE_ID')
    ZAPI_TOKEN = os.environ.get('ZAPI_TOKEN')
    ZAPI_CLIENT_TOKEN = os.environ.get('ZAPI_CLIENT_TOKEN')

    if not ZAPI_INSTANCE_ID or not ZAPI_TOKEN:
        logger.warning("Credenciais Z-API ausentes. Envios de WhatsApp serão recusados.")

    # === SERVIÇOS EXTERNOS ===
    VIACEP_URL = os.environ.get('VIACEP_URL', 'https://viacep.com.br/ws')
    BRASILAPI_URL = os.environ.get('BRASILAPI_URL', 'https://brasilapi.com.br/api/cep/v1')
    ENCURTADOR_URL = os.environ.get('ENCURTADOR_URL', 'https://api.encurtador.dev/encurtamentos')
    HTTP_TIMEOUT = float(os.environ.get('HTTP_TIMEOUT', '10'))

    # Base usada nos links curtos impressos no QR Code dos certificados
    URL_BASE_PUBLICA = os.environ.get('URL_BASE_PUBLICA', 'http://localhost:5000').rstrip('/')
    CERTIFICADO_FUNDO = os.environ.get('CERTIFICADO_FUNDO')

    # === REGRAS DE NEGÓCIO ===
    ADMIN_CACHE_TTL = int(os.environ.get('ADMIN_CACHE_TTL', '300'))
    LOTE_INTERVALO = float(os.environ.get('LOTE_INTERVALO', '1.0'))
    LOTE_CONCORRENCIA = int(os.environ.get('LOTE_CONCORRENCIA', '1'))
    PALAVRA_CHAVE_PADRAO = os.environ.get('PALAVRA_CHAVE_PADRAO', 'Cresci e Perdi 2025')

    # === FLASK ===
    DEBUG = os.environ.get('FLASK_DEBUG', 'False').lower() in ('true', '1')
    RATELIMIT_ENABLED = True
    # Em produção com várias instâncias, apontar para Redis (redis://...)
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    # === OAUTH (LOGIN) ===
    GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET')

    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        logger.warning("Credenciais OAuth (CLIENT_ID/SECRET) ausentes. Apenas o login por senha estará disponível.")
