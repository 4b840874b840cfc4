"""
Módulo de Turmas (Blueprint)
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

turmas_bp = Blueprint('turmas_bp', __name__, url_prefix='/turmas')
configurar_blueprint_json(turmas_bp)

from . import routes
