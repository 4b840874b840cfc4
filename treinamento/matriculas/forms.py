from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Email, Optional


class WebhookMatriculaForm(FlaskForm):
    """
    Payload do webhook de matrícula (Typebot e integrações externas).
    Os nomes dos campos seguem o contrato já publicado para os parceiros.
    """
    class Meta:
        csrf = False  # Autenticado pelo cabeçalho X-Webhook-Secret

    student_name = StringField('Nome', validators=[DataRequired(message="student_name é obrigatório")])
    student_email = StringField('E-mail', validators=[
        DataRequired(message="student_email é obrigatório"),
        Email(message="E-mail inválido"),
    ])
    student_phone = StringField('Telefone', validators=[Optional()])
    course_id = StringField('Curso', validators=[Optional()])
    course_name = StringField('Nome do curso', validators=[Optional()])
    turma_id = StringField('Turma', validators=[Optional()])
    unit_code = StringField('Unidade', validators=[Optional()])
    created_by = StringField('Origem', validators=[Optional()])
    status = StringField('Status', validators=[Optional()])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        if not (self.course_id.data or self.course_name.data):
            self.course_id.errors.append("Informe course_id ou course_name")
            return False
        return True

    def para_dados(self) -> dict:
        return {
            'aluno_nome': self.student_name.data,
            'aluno_email': self.student_email.data,
            'aluno_telefone': self.student_phone.data,
            'curso_id': self.course_id.data,
            'curso_nome': self.course_name.data,
            'turma_id': self.turma_id.data,
            'unidade_codigo': self.unit_code.data,
            'status': self.status.data,
        }
