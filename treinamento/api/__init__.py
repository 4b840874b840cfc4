"""
Módulo da API Pública (Blueprint)

Endpoints chamados por integrações e agendadores, autenticados por
cabeçalho secreto em vez de sessão: webhook de matrícula, ciclo de vida das
turmas, consulta de CEP, encurtador e o redirecionamento dos links curtos.
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

api_bp = Blueprint('api_bp', __name__)
configurar_blueprint_json(api_bp)

from . import routes
