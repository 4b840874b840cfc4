"""
Rotas do Módulo de Autenticação

Login pelo Google, login por senha (franqueados e colaboradores criados
em lote), logout, troca de senha e o perfil do usuário com seus papéis.
"""

from flask import abort, jsonify, redirect, session, url_for
from flask_wtf.csrf import generate_csrf

from . import auth_bp
from . import services as auth_services
from .forms import LoginSenhaForm, TrocaSenhaForm
from .permissoes import requer_login, resolver_papeis, usuario_atual_id
from treinamento.core.erros import ErroValidacao
from treinamento.core.extensions import limiter, oauth
from treinamento.core.respostas import sucesso


# === LOGIN GOOGLE ===

@auth_bp.route('/google/login')
def google_login():
    """ Redireciona para o Google. """
    if getattr(oauth, 'google', None) is None:
        abort(404, "Login pelo Google não configurado.")
    redirect_uri = url_for('auth_bp.google_callback', _external=True)
    return oauth.google.authorize_redirect(redirect_uri)


@auth_bp.route('/google/callback')
def google_callback():
    """ Retorno do Google após login. """
    token = oauth.google.authorize_access_token()
    user_info = oauth.google.userinfo(token=token)
    if not user_info:
        abort(502, "Falha ao obter dados do Google.")

    google_profile = {
        'email': user_info.get('email'),
        'nome': user_info.get('name'),
        'google_id': user_info.get('sub'),
    }
    session['usuario'] = auth_services.verificar_ou_criar_usuario(google_profile)
    return redirect(url_for('auth_bp.perfil'))


# === LOGIN POR SENHA ===

@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login_senha():
    form = LoginSenhaForm()
    if not form.validate_on_submit():
        raise ErroValidacao(f"Erro de Validação: {form.errors}")

    usuario, troca_obrigatoria = auth_services.autenticar_com_senha(form.email.data, form.senha.data)
    session['usuario'] = usuario
    return sucesso(usuario=usuario, troca_obrigatoria=troca_obrigatoria)


@auth_bp.route('/senha', methods=['POST'])
@requer_login
def trocar_senha():
    form = TrocaSenhaForm()
    if not form.validate_on_submit():
        raise ErroValidacao(f"Erro de Validação: {form.errors}")

    auth_services.trocar_senha(usuario_atual_id(), form.senha_atual.data, form.nova_senha.data)
    return sucesso()


@auth_bp.route('/logout', methods=['POST', 'GET'])
def logout():
    session.pop('usuario', None)
    return sucesso()


# === PERFIL ===

@auth_bp.route('/me')
@requer_login
def perfil():
    """
    Perfil da sessão com os papéis reavaliados a cada chamada.
    """
    usuario_id = usuario_atual_id()
    dados = auth_services.obter_usuario(usuario_id)
    if not dados or not dados.get('ativo', True):
        session.pop('usuario', None)
        abort(401, "Sessão inválida.")

    papeis = sorted(papel.value for papel in resolver_papeis(usuario_id))
    return jsonify({
        'success': True,
        'usuario': {k: dados.get(k) for k in ('id', 'nome', 'email', 'tipo_usuario', 'papel', 'unidade_codigo')},
        'papeis': papeis,
        # Token para o cabeçalho X-CSRFToken das chamadas de sessão
        'csrf_token': generate_csrf(),
    })
