"""
Rotas do Módulo de Certificados
"""

from . import certificados_bp
from . import services as certificados_services
from treinamento.auth.permissoes import requer_login, usuario_atual_id
from treinamento.core.respostas import sucesso


@certificados_bp.route('', methods=['GET', 'OPTIONS'])
@requer_login
def meus_certificados():
    return sucesso(certificados=certificados_services.listar_certificados_do_aluno(usuario_atual_id()))


@certificados_bp.route('/matriculas/<matricula_id>', methods=['POST', 'OPTIONS'])
@requer_login
def solicitar(matricula_id):
    certificado, criado = certificados_services.solicitar_certificado(matricula_id, usuario_atual_id())
    return sucesso(certificado=certificado, criado=criado), (201 if criado else 200)
