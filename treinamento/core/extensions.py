"""
Módulo Central de Extensões.
Evita importações circulares centralizando as instâncias das extensões.
"""
from flask import session
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect
from authlib.integrations.flask_client import OAuth


def chave_do_limite() -> str:
    """Usuário logado conta pelo id; chamadas anônimas (webhook, links curtos) pelo IP."""
    usuario = session.get('usuario') or {}
    if usuario.get('id'):
        return f"usuario:{usuario['id']}"
    return get_remote_address()


# 1. Limiter (Rate Limiting)
# O backend vem de RATELIMIT_STORAGE_URI; sem ele, memória do processo.
limiter = Limiter(
    key_func=chave_do_limite,
    default_limits=["2000 per day", "300 per hour"]
)

# 2. CSRF Protection (formulários de sessão; a API JSON fica isenta)
csrf = CSRFProtect()

# 3. OAuth (Authlib) - registrado na factory quando há credenciais do Google
oauth = OAuth()
