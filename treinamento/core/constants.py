"""
Constantes Globais do Sistema.
Fonte Única da Verdade (Single Source of Truth) para nomes de coleções,
módulos do sistema e valores de domínio.
"""

# === COLEÇÕES DO FIRESTORE ===
COLECAO_UNIDADES = 'unidades'
COLECAO_USUARIOS = 'usuarios'
COLECAO_ADMINS = 'admins'
COLECAO_CREDENCIAIS = 'credenciais'
COLECAO_CURSOS = 'cursos'
COLECAO_AULAS = 'aulas'
COLECAO_TURMAS = 'turmas'
COLECAO_MATRICULAS = 'matriculas'
COLECAO_PRESENCAS = 'presencas'
COLECAO_PROGRESSO_AULAS = 'progresso_aulas'
COLECAO_QUIZZES = 'quizzes'
COLECAO_RESPOSTAS_QUIZ = 'respostas_quiz'
COLECAO_CERTIFICADOS = 'certificados'
COLECAO_REDIRECIONAMENTOS = 'redirecionamentos'
COLECAO_PERMISSOES_PROFESSOR = 'permissoes_professor'
COLECAO_DISPAROS_WHATSAPP = 'disparos_whatsapp'

# === USUÁRIOS ===
TIPO_ADMIN = 'Admin'
TIPO_PROFESSOR = 'Professor'
TIPO_ALUNO = 'Aluno'

PAPEL_FRANQUEADO = 'Franqueado'
PAPEL_COLABORADOR = 'Colaborador'

APROVACAO_PENDENTE = 'pendente'
APROVACAO_APROVADO = 'aprovado'
APROVACAO_REJEITADO = 'rejeitado'

# === UNIDADES ===
FASES_UNIDADE = ('implantacao', 'operacao', 'suspensa', 'cancelada')

# === CURSOS ===
CURSO_AO_VIVO = 'ao_vivo'
CURSO_GRAVADO = 'gravado'
CURSO_ATIVO = 'ativo'
CURSO_ARQUIVADO = 'arquivado'

# === MATRÍCULAS E CERTIFICADOS ===
MATRICULA_ATIVA = 'Ativo'
AULA_CONCLUIDA = 'concluida'
CERTIFICADO_EMITIDO = 'Emitido'
CERTIFICADO_GERANDO = 'gerando'

QUIZ_ATIVO = 'ativo'
QUIZ_INATIVO = 'inativo'

# === PERMISSÕES DE PROFESSOR ===
# Módulo -> campos que podem ser habilitados individualmente
MODULOS_SISTEMA = {
    'dashboard': ['analytics', 'reports', 'statistics'],
    'courses': ['create', 'edit', 'delete', 'publish'],
    'lessons': ['create', 'edit', 'delete', 'schedule'],
    'turmas': ['create', 'edit', 'delete', 'manage_students'],
    'enrollments': ['create', 'edit', 'delete', 'approve'],
    'attendance': ['mark', 'edit', 'reports'],
    'progress': ['view', 'edit', 'reports'],
    'quiz': ['create', 'edit', 'delete', 'grade'],
    'certificates': ['generate', 'edit', 'approve'],
    'communication': ['send', 'broadcast', 'manage'],
    'settings': ['system', 'users', 'permissions'],
}
