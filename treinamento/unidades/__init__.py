"""
Módulo de Unidades (Blueprint)

Cadastro de colaboradores e aprovação pelo franqueado da unidade.
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

unidades_bp = Blueprint('unidades_bp', __name__, url_prefix='/unidades')
configurar_blueprint_json(unidades_bp)

from . import routes
