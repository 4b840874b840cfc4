"""
Módulo de Autenticação (Blueprint)

Define o Blueprint do Flask para as rotas de autenticação
(Login Google, Login por senha, Logout, Perfil).
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

auth_bp = Blueprint('auth_bp', __name__)

configurar_blueprint_json(auth_bp)

# Importa as rotas no final para evitar dependência circular
from . import routes
