"""
Fila de Tarefas com Limite de Ritmo.

Operações em lote (importação de unidades, criação de franqueados, disparos
de WhatsApp) passam por aqui: no máximo `max_concorrencia` tarefas em voo e
pelo menos `intervalo` segundos entre o início de duas tarefas, para respeitar
o limite de requisições das APIs externas. Falhas são registradas por item;
a fila nunca aborta o lote inteiro.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from flask import current_app, has_app_context

from treinamento.core.logger import get_logger

logger = get_logger(__name__)

SUCESSO = 'success'
IGNORADO = 'skipped'
ERRO = 'error'


@dataclass
class ResultadoItem:
    item: Any
    status: str = SUCESSO
    motivo: Optional[str] = None
    dados: dict = field(default_factory=dict)

    def para_dict(self) -> dict:
        resultado = {'status': self.status, **self.dados}
        if self.motivo:
            resultado['motivo'] = self.motivo
        return resultado


class FilaLimitada:

    def __init__(self, max_concorrencia: int = 1, intervalo: float = 0.0,
                 dormir: Callable[[float], None] = time.sleep,
                 relogio: Callable[[], float] = time.monotonic):
        if max_concorrencia < 1:
            raise ValueError("max_concorrencia deve ser >= 1")
        if intervalo < 0:
            raise ValueError("intervalo não pode ser negativo")

        self.max_concorrencia = max_concorrencia
        self.intervalo = intervalo
        self._dormir = dormir
        self._relogio = relogio
        self._trava = threading.Lock()
        self._proximo_inicio: Optional[float] = None

    def _aguardar_vez(self) -> None:
        # Reserva o próximo horário de início sob a trava; dorme fora dela.
        with self._trava:
            agora = self._relogio()
            inicio = agora if self._proximo_inicio is None else max(agora, self._proximo_inicio)
            self._proximo_inicio = inicio + self.intervalo
        espera = inicio - agora
        if espera > 0:
            self._dormir(espera)

    def _executar_item(self, tarefa: Callable[[Any], Any], item: Any) -> ResultadoItem:
        self._aguardar_vez()
        try:
            retorno = tarefa(item)
        except Exception as e:
            logger.warning(f"Item do lote falhou ({item!r}): {e}")
            return ResultadoItem(item=item, status=ERRO, motivo=str(e))

        if isinstance(retorno, ResultadoItem):
            return retorno
        return ResultadoItem(item=item, dados=retorno if isinstance(retorno, dict) else {})

    def executar(self, itens: Iterable[Any], tarefa: Callable[[Any], Any]) -> List[ResultadoItem]:
        """
        Executa `tarefa(item)` para cada item e devolve os resultados na ordem
        de entrada.
        """
        itens = list(itens)
        self._proximo_inicio = None
        if not itens:
            return []

        if self.max_concorrencia == 1:
            return [self._executar_item(tarefa, item) for item in itens]

        # As threads do pool não herdam o app context de quem chamou
        app = current_app._get_current_object() if has_app_context() else None

        def executar_no_contexto(item):
            if app is None:
                return self._executar_item(tarefa, item)
            with app.app_context():
                return self._executar_item(tarefa, item)

        with ThreadPoolExecutor(max_workers=self.max_concorrencia) as executor:
            futuros = [executor.submit(executar_no_contexto, item) for item in itens]
            return [f.result() for f in futuros]


def resumo(resultados: List[ResultadoItem]) -> dict:
    """Contagem por status, no formato exibido ao final de operações em lote."""
    contagem = {'total': len(resultados), SUCESSO: 0, IGNORADO: 0, ERRO: 0}
    for resultado in resultados:
        contagem[resultado.status] = contagem.get(resultado.status, 0) + 1
    return contagem


def fila_da_config(config) -> FilaLimitada:
    return FilaLimitada(
        max_concorrencia=config.get('LOTE_CONCORRENCIA', 1),
        intervalo=config.get('LOTE_INTERVALO', 0.0),
    )
