"""
Cliente do Gateway de WhatsApp (Z-API).

Envio de texto individual e mensagens prontas usadas pela plataforma
(senha temporária, aviso de aprovação).
"""

import re
from typing import Optional

import requests
from flask import current_app

from treinamento.core.erros import ErroDependenciaExterna, ErroValidacao
from treinamento.core.logger import get_logger

logger = get_logger(__name__)

URL_ZAPI = 'https://api.z-api.io/instances/{instancia}/token/{token}'


def normalizar_telefone(telefone: Optional[str]) -> Optional[str]:
    """Mantém só dígitos e garante o DDI 55. Retorna None se não sobrar nada."""
    digitos = re.sub(r'\D', '', telefone or '')
    if not digitos:
        return None
    if digitos.startswith('55'):
        return digitos
    return f"55{digitos}"


def whatsapp_configurado() -> bool:
    return bool(current_app.config.get('ZAPI_INSTANCE_ID') and current_app.config.get('ZAPI_TOKEN'))


def _url_base() -> str:
    if not whatsapp_configurado():
        raise ErroDependenciaExterna("WhatsApp não configurado. Defina ZAPI_INSTANCE_ID e ZAPI_TOKEN.")
    return URL_ZAPI.format(
        instancia=current_app.config['ZAPI_INSTANCE_ID'],
        token=current_app.config['ZAPI_TOKEN'],
    )


def enviar_texto(telefone: str, mensagem: str) -> dict:
    """
    Envia uma mensagem de texto. Levanta ErroDependenciaExterna em resposta não-2xx.
    """
    numero = normalizar_telefone(telefone)
    if not numero:
        raise ErroValidacao("Telefone inválido para envio de WhatsApp.")
    if not mensagem:
        raise ErroValidacao("Mensagem vazia.")

    headers = {'Content-Type': 'application/json'}
    client_token = current_app.config.get('ZAPI_CLIENT_TOKEN')
    if client_token:
        headers['Client-Token'] = client_token

    try:
        resposta = requests.post(
            f"{_url_base()}/send-text",
            json={'phone': numero, 'message': mensagem},
            headers=headers,
            timeout=current_app.config.get('HTTP_TIMEOUT', 10),
        )
    except requests.RequestException as e:
        logger.error(f"Erro de rede no envio de WhatsApp para {numero}: {e}")
        raise ErroDependenciaExterna(f"Falha de comunicação com o WhatsApp: {e}") from e

    if not resposta.ok:
        logger.error(f"Z-API respondeu {resposta.status_code} para {numero}: {resposta.text[:200]}")
        raise ErroDependenciaExterna(f"WhatsApp retornou erro {resposta.status_code}.")

    return resposta.json() if resposta.content else {}


def mensagem_senha_temporaria(nome: str, email: str, senha: str) -> str:
    return (
        f"Olá, {nome}! Seu acesso à plataforma de treinamentos foi criado.\n\n"
        f"Login: {email}\n"
        f"Senha temporária: {senha}\n\n"
        f"Por segurança, troque a senha no primeiro acesso."
    )


def mensagem_colaborador_aprovado(nome: str, unidade: str) -> str:
    return (
        f"Olá, {nome}! Seu cadastro como colaborador da unidade {unidade} foi aprovado. "
        f"Você já pode acessar a plataforma de treinamentos."
    )
