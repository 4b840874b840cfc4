import pytest

from configuracao import ConfigTeste
from fakes import FakeFirestore
from treinamento import create_app
from treinamento.auth.permissoes import limpar_cache_admin
from treinamento.core import database


@pytest.fixture
def db():
    """Firestore em memória instalado como cliente da aplicação."""
    fake = FakeFirestore()
    database.definir_cliente(fake)
    limpar_cache_admin()
    yield fake
    database.definir_cliente(None)
    limpar_cache_admin()


@pytest.fixture
def app(db):
    app = create_app(ConfigTeste)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Coloca um usuário na sessão do client de teste."""
    def _login(usuario_id):
        with client.session_transaction() as sessao:
            sessao['usuario'] = {'id': usuario_id}
    return _login
