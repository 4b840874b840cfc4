"""
Módulo de Certificados (Blueprint)
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

certificados_bp = Blueprint('certificados_bp', __name__, url_prefix='/certificados')
configurar_blueprint_json(certificados_bp)

from . import routes
