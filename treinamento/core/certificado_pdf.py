"""
Módulo de Renderização de Certificados

Gera o PDF do certificado (A4 paisagem) com nome do participante, curso,
data, carga horária e o QR Code que aponta para o link curto de verificação.
"""

import os
from io import BytesIO
from typing import Optional

import qrcode
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from treinamento.core.logger import get_logger

logger = get_logger(__name__)

COR_TEXTO = (87 / 255, 55 / 255, 40 / 255)
LARGURA, ALTURA = landscape(A4)


def formatar_carga_horaria(minutos_totais: int) -> str:
    """Soma de minutos das aulas -> horas arredondadas, ex.: '12h'."""
    return f"{round((minutos_totais or 0) / 60)}h"


def gerar_qrcode_png(conteudo: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=2,
    )
    qr.add_data(conteudo)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def _y(topo_mm: float) -> float:
    # As posições do layout são medidas a partir do topo da página
    return ALTURA - topo_mm * mm


def renderizar_certificado(nome: str, curso: str, data: str, carga_horaria: str,
                           url_verificacao: Optional[str] = None,
                           fundo: Optional[str] = None) -> bytes:
    """
    Renderiza o certificado e devolve os bytes do PDF.

    Args:
        nome: Nome do participante.
        curso: Nome do curso.
        data: Data de emissão já formatada (dd/mm/aaaa).
        carga_horaria: Texto da carga horária, ex.: '12h'.
        url_verificacao: Link curto codificado no QR Code.
        fundo: Caminho opcional da imagem de fundo do modelo.
    """
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(LARGURA, ALTURA))
    pdf.setTitle(f"Certificado - {nome}")

    if fundo and os.path.exists(fundo):
        pdf.drawImage(fundo, 0, 0, width=LARGURA, height=ALTURA)
    elif fundo:
        logger.warning(f"Imagem de fundo do certificado não encontrada: {fundo}")

    pdf.setFillColorRGB(*COR_TEXTO)
    centro = LARGURA / 2

    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawCentredString(centro, _y(67), "CONFERIMOS O CERTIFICADO PARA")

    pdf.setFont("Helvetica", 28)
    pdf.drawCentredString(centro, _y(83), nome.upper())

    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawCentredString(centro, _y(99), "POR TER FREQUENTADO O CURSO DE")

    pdf.setFont("Helvetica", 18)
    pdf.drawCentredString(centro, _y(112), curso.upper())

    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawCentredString(87 * mm, _y(128), "DATA")
    pdf.setFont("Helvetica", 11)
    pdf.drawCentredString(87 * mm, _y(135), data)

    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(62 * mm, _y(143), "CARGA HORÁRIA:")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(95 * mm, _y(143), f"{carga_horaria.rstrip('h')} HORAS")

    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawCentredString(208 * mm, _y(138), "ASSINATURA")

    if url_verificacao:
        qr_png = gerar_qrcode_png(url_verificacao)
        pdf.drawImage(ImageReader(BytesIO(qr_png)), 262 * mm, _y(210), width=30 * mm, height=30 * mm)

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
