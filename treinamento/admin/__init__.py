"""
Módulo Admin (Blueprint)

Gerencia as rotas de administração (permissões de professores, disparos
de WhatsApp, importação de unidades e franqueados, senhas).
"""

from flask import Blueprint

from treinamento.core.respostas import configurar_blueprint_json

admin_bp = Blueprint(
    'admin_bp',
    __name__,
    url_prefix='/admin' # Todas as rotas começarão com /admin
)
configurar_blueprint_json(admin_bp)

from . import routes
