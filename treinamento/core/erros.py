"""
Taxonomia de erros da plataforma.

Cada erro sabe o status HTTP com que deve ser devolvido, para que os
blueprints JSON convertam exceções de serviço em respostas uniformes.
"""


class ErroTreinamento(Exception):
    """Base de todos os erros de domínio."""

    status_http = 500

    def __init__(self, mensagem: str):
        super().__init__(mensagem)
        self.mensagem = mensagem

    def para_dict(self) -> dict:
        return {'success': False, 'error': self.mensagem}


class ErroValidacao(ErroTreinamento):
    """Campos obrigatórios ausentes ou inválidos. Nunca é re-tentado."""

    status_http = 400


class ErroNaoEncontrado(ErroTreinamento):
    status_http = 404


class ErroNaoAutenticado(ErroTreinamento):
    status_http = 401


class ErroAutorizacao(ErroTreinamento):
    status_http = 403


class ErroConflito(ErroTreinamento):
    """O recurso existe em um estado que impede a operação."""

    status_http = 409


class ErroDependenciaExterna(ErroTreinamento):
    """Falha do Firestore, Storage ou de um serviço HTTP de terceiros."""

    status_http = 502


class ErroCertificado(ErroTreinamento):
    """
    Falha em uma etapa da emissão de certificado.

    `etapa` é uma de: registro, reserva_codigo, renderizacao,
    armazenamento, redirecionamento, atualizacao.
    """

    def __init__(self, etapa: str, mensagem: str, certificado_id: str = None):
        super().__init__(f"Falha na etapa '{etapa}' da emissão do certificado: {mensagem}")
        self.etapa = etapa
        self.certificado_id = certificado_id

    def para_dict(self) -> dict:
        dados = super().para_dict()
        dados['etapa'] = self.etapa
        if self.certificado_id:
            dados['certificado_id'] = self.certificado_id
        return dados
