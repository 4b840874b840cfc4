"""
Módulo de Matrículas (Blueprint)

Rotas do portal do aluno (matrículas, presença e conclusão de aulas) e a
matrícula manual feita pela equipe.
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

matriculas_bp = Blueprint('matriculas_bp', __name__, url_prefix='/matriculas')
configurar_blueprint_json(matriculas_bp)

# Importa as rotas no final
from . import routes
