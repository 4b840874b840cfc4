"""
Módulo de Logging Centralizado.

Todos os módulos da plataforma registram eventos por aqui, em stdout,
no formato lido pelo Cloud Logging.
"""

import logging
import os
import sys

FORMATO = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'


def _nivel_configurado() -> int:
    nome = os.environ.get('LOG_LEVEL', 'INFO').upper()
    return getattr(logging, nome, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Retorna um logger com handler único em stdout.

    Args:
        name (str): O nome do módulo que está chamando o log (geralmente __name__).
    """
    logger = logging.getLogger(name)

    # Evita handlers duplicados quando o módulo é importado mais de uma vez
    if not logger.handlers:
        logger.setLevel(_nivel_configurado())

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(FORMATO))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
