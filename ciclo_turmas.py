"""
Script Utilitário: ciclo_turmas.py

Avança as turmas conforme o relógio (abertura de inscrições, início e
encerramento). Feito para ser chamado por um agendador externo (cron,
Cloud Scheduler). Pode rodar em paralelo com outra execução sem duplicar
transições.

$ python ciclo_turmas.py
"""

import json
import sys

from treinamento import create_app
from treinamento.turmas.ciclo_vida import executar_ciclo

app = create_app()


def main() -> int:
    with app.app_context():
        resumo = executar_ciclo()
    print(json.dumps(resumo, ensure_ascii=False, indent=2))
    return 0 if resumo['success'] else 1


if __name__ == "__main__":
    sys.exit(main())
