"""
Módulo de Quizzes (Blueprint)
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

quiz_bp = Blueprint('quiz_bp', __name__, url_prefix='/quizzes')
configurar_blueprint_json(quiz_bp)

from . import routes
