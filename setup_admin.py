"""
Script Utilitário: setup_admin.py
Use este script para promover um usuário a Administrador manualmente.
"""

from treinamento import create_app
from treinamento.auth.services import buscar_usuario_por_email
from treinamento.core.constants import COLECAO_ADMINS, COLECAO_USUARIOS, TIPO_ADMIN
from treinamento.core.database import get_db

# Inicializa a aplicação para carregar configurações e banco de dados
app = create_app()


def promover_usuario(email):
    print(f"--- Promovendo usuário: {email} ---")

    with app.app_context():
        usuario = buscar_usuario_por_email(email)
        if not usuario:
            print(f"❌ ERRO: O usuário '{email}' não foi encontrado no banco de dados.")
            print("DICA: Faça login na aplicação pelo menos uma vez para criar o registro inicial.")
            return

        db = get_db()
        db.collection(COLECAO_USUARIOS).document(usuario['id']).update({'tipo_usuario': TIPO_ADMIN})
        db.collection(COLECAO_ADMINS).document(usuario['id']).set({'ativo': True})

        print(f"✅ SUCESSO! O usuário '{email}' agora é um ADMIN.")
        print("⚠️  A mudança vale em até ADMIN_CACHE_TTL segundos; não é preciso novo login.")


if __name__ == "__main__":
    email_alvo = input("Digite o e-mail do usuário que será Admin: ").strip()
    promover_usuario(email_alvo)
