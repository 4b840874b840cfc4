"""
Consulta de CEP com dois provedores.

ViaCEP é o provedor principal; a BrasilAPI é consultada quando o ViaCEP
falha (erro HTTP ou de rede) ou não reconhece o código. O resultado sai
sempre no formato de chaves do ViaCEP, acrescido do provedor usado.
"""

import re

import requests
from flask import current_app

from treinamento.core.erros import ErroDependenciaExterna, ErroNaoEncontrado, ErroValidacao
from treinamento.core.logger import get_logger

logger = get_logger(__name__)


class _CepDesconhecido(Exception):
    pass


def limpar_cep(cep: str) -> str:
    digitos = re.sub(r'\D', '', cep or '')
    if len(digitos) != 8:
        raise ErroValidacao("CEP inválido. Deve conter 8 dígitos.")
    return digitos


def _consultar_viacep(cep: str, timeout: float) -> dict:
    base = current_app.config.get('VIACEP_URL', 'https://viacep.com.br/ws')
    resposta = requests.get(f"{base}/{cep}/json/", timeout=timeout)
    resposta.raise_for_status()

    dados = resposta.json()
    if dados.get('erro'):
        raise _CepDesconhecido(cep)

    return {
        'cep': dados.get('cep', cep),
        'logradouro': dados.get('logradouro', ''),
        'complemento': dados.get('complemento', ''),
        'bairro': dados.get('bairro', ''),
        'localidade': dados.get('localidade', ''),
        'uf': dados.get('uf', ''),
        'provedor': 'viacep',
    }


def _consultar_brasilapi(cep: str, timeout: float) -> dict:
    base = current_app.config.get('BRASILAPI_URL', 'https://brasilapi.com.br/api/cep/v1')
    resposta = requests.get(f"{base}/{cep}", timeout=timeout)
    if resposta.status_code == 404:
        raise _CepDesconhecido(cep)
    resposta.raise_for_status()

    dados = resposta.json()
    return {
        'cep': f"{cep[:5]}-{cep[5:]}",
        'logradouro': dados.get('street') or '',
        'complemento': '',
        'bairro': dados.get('neighborhood') or '',
        'localidade': dados.get('city') or '',
        'uf': dados.get('state') or '',
        'provedor': 'brasilapi',
    }


def buscar_cep(cep: str) -> dict:
    """
    Resolve um CEP.

    Raises:
        ErroValidacao: o CEP não tem 8 dígitos.
        ErroNaoEncontrado: nenhum provedor conhece o CEP.
        ErroDependenciaExterna: nenhum provedor respondeu e nenhum o declarou inexistente.
    """
    cep = limpar_cep(cep)
    timeout = current_app.config.get('HTTP_TIMEOUT', 10)

    falhas = []
    for consultar in (_consultar_viacep, _consultar_brasilapi):
        try:
            return consultar(cep, timeout)
        except _CepDesconhecido:
            logger.info(f"CEP {cep} não reconhecido por {consultar.__name__}.")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Falha em {consultar.__name__} para o CEP {cep}: {e}")
            falhas.append(str(e))

    if len(falhas) == 2:
        raise ErroDependenciaExterna("Falha ao consultar o serviço de CEP.")
    raise ErroNaoEncontrado("CEP não encontrado.")
