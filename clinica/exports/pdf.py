"""
Daily appointment sheet printed at the front desk.

Rendered with ReportLab's platypus layer; the page footer needs the total
page count, so pages are buffered by ``NumberedCanvas`` and stamped once the
document is complete.
"""
from datetime import date, datetime
from io import BytesIO
from typing import Any, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from clinica.core.config import settings
from clinica.core.dates import current_date, format_time, to_iso_date, to_long_display
from clinica.db.models.appointment import CANCELLED
from clinica.exports.patients import ExportFile
from clinica.services.integrity import record_value

COLUMNS = ["Nro. Ficha", "Apellido", "Nombre", "Teléfono", "Hora"]
COLUMN_WIDTHS = [30 * mm, 50 * mm, 50 * mm, 40 * mm, 20 * mm]


def _patient_of(appointment: Any) -> Any:
    if isinstance(appointment, dict):
        return appointment.get("paciente") or appointment.get("pacientes")
    return getattr(appointment, "patient", None)


def _has_named_patient(appointment: Any) -> bool:
    patient = _patient_of(appointment)
    return bool(patient and record_value(patient, "nombre") and record_value(patient, "apellido"))


def daily_sheet_rows(appointments: Sequence[Any]) -> List[List[str]]:
    """Table body: non-cancelled appointments with a named patient, by time."""
    printable = [
        a for a in appointments
        if record_value(a, "estado") != CANCELLED and _has_named_patient(a)
    ]
    printable.sort(key=lambda a: format_time(record_value(a, "hora")))

    rows = []
    for appointment in printable:
        patient = _patient_of(appointment)
        rows.append([
            record_value(patient, "numero_ficha") or "-",
            record_value(patient, "apellido") or "-",
            record_value(patient, "nombre") or "-",
            record_value(patient, "telefono") or "-",
            format_time(record_value(appointment, "hora")),
        ])
    return rows


def footer_text(printed_at: datetime, page: int, total: int) -> str:
    stamp = printed_at.strftime("%d/%m/%Y a las %H:%M")
    return f"Impreso el {stamp} - Página {page} de {total}"


class NumberedCanvas(canvas.Canvas):
    printed_at: Optional[datetime] = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int):
        self.setFont("Helvetica", 8)
        self.setFillColor(colors.grey)
        width, _ = self._pagesize
        self.drawCentredString(width / 2, 10 * mm, footer_text(self.printed_at, self._pageNumber, total))


def build_daily_sheet(appointments: Sequence[Any], fecha: date, printed_at: Optional[datetime] = None) -> ExportFile:
    printed_at = printed_at or current_date()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=10 * mm, rightMargin=10 * mm,
        topMargin=15 * mm, bottomMargin=20 * mm,
        title=f"Turnos {to_iso_date(fecha)}",
    )

    styles = getSampleStyleSheet()
    clinic_style = ParagraphStyle("clinic", parent=styles["Title"], fontSize=20)
    heading = ParagraphStyle("heading", parent=styles["Heading2"], alignment=1)
    subtitle = ParagraphStyle("subtitle", parent=styles["Normal"], alignment=1, fontSize=12)

    story = [
        Paragraph(settings.CLINIC_NAME, clinic_style),
        Paragraph("Lista de Pacientes con Turno", heading),
        Paragraph(to_long_display(fecha), subtitle),
        Spacer(1, 6 * mm),
    ]

    table = Table([COLUMNS] + daily_sheet_rows(appointments), colWidths=COLUMN_WIDTHS, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.Color(66 / 255, 66 / 255, 66 / 255)),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 10),
        ("FONTSIZE", (0, 1), (-1, -1), 9),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.Color(245 / 255, 245 / 255, 245 / 255)]),
        ("GRID", (0, 0), (-1, -1), 0.1, colors.Color(200 / 255, 200 / 255, 200 / 255)),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    story.append(table)

    # Footer needs the stamp at canvas construction time
    page_canvas = type("SheetCanvas", (NumberedCanvas,), {"printed_at": printed_at})
    doc.build(story, canvasmaker=page_canvas)

    return ExportFile(
        filename=f"turnos_{to_iso_date(fecha)}.pdf",
        content=buffer.getvalue(),
        media_type="application/pdf",
    )
