"""
Módulo Principal da Aplicação (Application Factory)
"""

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix # Importação necessária para o Cloud Run

from .core.extensions import csrf, limiter, oauth
from .core.logger import get_logger

logger = get_logger(__name__)


def create_app(config_class=None):
    """
    Cria e configura uma instância da aplicação Flask.
    """
    if config_class is None:
        # Import tardio: config.py usa o logger deste pacote
        from config import Config
        config_class = Config

    app = Flask(__name__, instance_relative_config=True)

    # === CORREÇÃO HTTPS (Cloud Run) ===
    # Ajusta o Flask para entender que está atrás de um Proxy (Cloud Run)
    # Isso garante que ele gere URLs com 'https://' em vez de 'http://'
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
    # ==================================

    # 1. Carrega a configuração
    app.config.from_object(config_class)

    # 2. Extensões
    limiter.init_app(app)
    csrf.init_app(app)
    oauth.init_app(app)

    google_client_id = app.config.get('GOOGLE_CLIENT_ID')
    google_client_secret = app.config.get('GOOGLE_CLIENT_SECRET')

    if google_client_id and google_client_secret:
        oauth.register(
            name='google',
            client_id=google_client_id,
            client_secret=google_client_secret,
            server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
            client_kwargs={
                'scope': 'openid email profile'
            }
        )
    else:
        logger.warning("GOOGLE_CLIENT_ID ou GOOGLE_CLIENT_SECRET não definidos. Login Google desativado.")

    # 3. Configura os Blueprints (Módulos)

    # Módulo de Autenticação
    from .auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/')

    # API pública (webhook, cron, CEP, encurtador, links curtos).
    # Autenticada por cabeçalho secreto, então fica fora do CSRF.
    from .api import api_bp
    csrf.exempt(api_bp)
    app.register_blueprint(api_bp)

    # Módulos do portal (prefixos definidos em cada __init__.py)
    from .turmas import turmas_bp
    from .matriculas import matriculas_bp
    from .quiz import quiz_bp
    from .certificados import certificados_bp
    from .unidades import unidades_bp
    app.register_blueprint(turmas_bp)
    app.register_blueprint(matriculas_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(certificados_bp)
    app.register_blueprint(unidades_bp)

    # Login por senha e cadastro público de colaborador não têm sessão para proteger
    csrf.exempt('treinamento.auth.routes.login_senha')
    csrf.exempt('treinamento.unidades.routes.registrar_colaborador')

    # Módulo Admin
    from .admin import admin_bp
    app.register_blueprint(admin_bp)

    # 4. Rota de Health Check
    @app.route("/health")
    def health_check():
        return "Plataforma de Treinamentos no ar!", 200

    return app
