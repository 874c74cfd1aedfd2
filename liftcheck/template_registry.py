"""Compiled-in catalog of bundled templates.

Used when no registry document is present, and as the last-resort fallback of
template resolution. File names are relative to the bundled templates
directory.
"""

from __future__ import annotations

from typing import List

from liftcheck.models.template import TemplateRecord, TemplateType


BUNDLED_TEMPLATES: List[TemplateRecord] = [
    TemplateRecord(
        id="alap_egysegu",
        name="Alapértelmezett Egységes Sablon",
        name_de="Standard Einheitliche Vorlage",
        type=TemplateType.UNIFIED,
        file_name="alap_egysegu.xlsx",
        description="Általános célú sablon lift átvételi protokollhoz",
        is_default=True,
    ),
    TemplateRecord(
        id="bovitett_kerdesek",
        name="Bővített Kérdések Sablon",
        name_de="Erweiterte Fragen Vorlage",
        type=TemplateType.QUESTIONS,
        file_name="bovitett_kerdesek.xlsx",
        description="Részletes kérdéssor különleges lift típusokhoz",
    ),
    TemplateRecord(
        id="expressz_protokoll",
        name="Expressz Protokoll Sablon",
        name_de="Express Protokoll Vorlage",
        type=TemplateType.PROTOCOL,
        file_name="expressz_protokoll.xlsx",
        description="Gyors protokoll egyszerű lift típusokhoz",
        is_default=True,
    ),
    TemplateRecord(
        id="teljes_dokumentacio",
        name="Teljes Dokumentáció Sablon",
        name_de="Vollständige Dokumentationsvorlage",
        type=TemplateType.UNIFIED,
        file_name="teljes_dokumentacio.xlsx",
        description="Komplett dokumentációs sablon minden funkcióval",
    ),
    TemplateRecord(
        id="minimal_kerdesek",
        name="Minimális Kérdések Sablon",
        name_de="Minimale Fragen Vorlage",
        type=TemplateType.QUESTIONS,
        file_name="minimal_kerdesek.xlsx",
        description="Alapvető kérdések gyors átvételhez",
        is_default=True,
    ),
    TemplateRecord(
        id="fejlett_szamitasok",
        name="Fejlett Számítások Sablon",
        name_de="Erweiterte Berechnungen Vorlage",
        type=TemplateType.UNIFIED,
        file_name="fejlett_szamitasok.xlsx",
        description="Fejlett mérési és számítási funkciókkal",
    ),
    TemplateRecord(
        id="alap_erdungskontrolle",
        name="Földelési Jegyzőkönyv Sablon (PDF)",
        name_de="Erdungsprotokoll Vorlage (PDF)",
        type=TemplateType.FORM_PDF,
        file_name="Erdungskontrolle.pdf",
        description="PDF űrlap sablon a kitöltött földelési jegyzőkönyv generálásához.",
        is_default=True,
    ),
]

__all__ = ["BUNDLED_TEMPLATES"]
