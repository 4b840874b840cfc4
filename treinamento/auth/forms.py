from flask_wtf import FlaskForm
from wtforms import PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length


class LoginSenhaForm(FlaskForm):
    class Meta:
        csrf = False  # Enviado como JSON pelo front-end; a sessão nasce aqui

    email = StringField('E-mail', validators=[
        DataRequired(message="E-mail é obrigatório"),
        Email(message="E-mail inválido"),
    ])
    senha = PasswordField('Senha', validators=[DataRequired(message="Senha é obrigatória")])


class TrocaSenhaForm(FlaskForm):
    class Meta:
        csrf = False

    senha_atual = PasswordField('Senha atual', validators=[DataRequired()])
    nova_senha = PasswordField('Nova senha', validators=[
        DataRequired(),
        Length(min=8, message="A nova senha deve ter ao menos 8 caracteres"),
    ])
