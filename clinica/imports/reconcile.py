"""
Decide what an import run writes.

Planning is pure: it takes mapped legacy rows plus a snapshot of the stored
records and returns insert/update decisions, so a run can be reviewed (and
tested) before anything touches the store.
"""
from dataclasses import dataclass, field, replace
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from clinica.core.logger import logger
from clinica.core.validation import normalize_ficha, phone_digits
from clinica.imports.mapping import LegacyAppointment, LegacyPatient
from clinica.services.integrity import name_key, name_phone_key, record_value

# Blank values in the store that an import may fill in
FILLABLE_FIELDS = ("telefono", "email", "fecha_nacimiento", "dni", "genero")

MATCH_EXACT = "exact"
MATCH_PHONE = "phone"
MATCH_PARTIAL = "partial"
AMBIGUOUS = "ambiguous"
NOT_FOUND = "not_found"


@dataclass
class FichaConflict:
    patient: LegacyPatient
    ficha: str
    owner_id: Any


@dataclass
class PatientUpdate:
    patient_id: Any
    changes: Dict[str, Any]
    source: LegacyPatient


@dataclass
class PatientImportPlan:
    inserts: List[LegacyPatient] = field(default_factory=list)
    updates: List[PatientUpdate] = field(default_factory=list)
    unchanged: int = 0
    ambiguous: List[LegacyPatient] = field(default_factory=list)
    ficha_conflicts: List[FichaConflict] = field(default_factory=list)
    duplicates: int = 0


@dataclass
class AppointmentImportPlan:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    not_found: List[LegacyAppointment] = field(default_factory=list)
    ambiguous: List[LegacyAppointment] = field(default_factory=list)
    duplicates: int = 0
    slot_taken: List[LegacyAppointment] = field(default_factory=list)


def dedupe_patients(patients: Iterable[LegacyPatient]) -> Tuple[List[LegacyPatient], int]:
    """Drop repeated (name, phone) rows, keeping the first; returns (unique, dropped)."""
    seen = set()
    unique = []
    dropped = 0
    for patient in patients:
        key = name_phone_key(patient)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        unique.append(patient)
    return unique, dropped


def _by_phone(candidates: Sequence[Any], telefono: Optional[str]) -> List[Any]:
    digits = phone_digits(telefono)
    if not digits:
        return []
    return [c for c in candidates if phone_digits(record_value(c, "telefono")) == digits]


class PatientIndex:
    """
    Resolve legacy (nombre, apellido[, telefono]) to a stored patient id.

    Exact case-insensitive name first; several namesakes are told apart by
    phone digits; with no exact match a single containment match on the full
    name is accepted. Anything else is reported instead of guessed.
    """

    def __init__(self, patients: Iterable[Any]):
        self.patients = list(patients)
        self._by_name: Dict[Tuple[str, str], List[Any]] = {}
        for patient in self.patients:
            self._by_name.setdefault(name_key(patient), []).append(patient)

    def candidates(self, nombre: str, apellido: str) -> List[Any]:
        return self._by_name.get(name_key({"nombre": nombre, "apellido": apellido}), [])

    def resolve(self, nombre: str, apellido: str, telefono: Optional[str] = None) -> Tuple[Optional[Any], str]:
        exact = self.candidates(nombre, apellido)
        if len(exact) == 1:
            return record_value(exact[0], "id"), MATCH_EXACT
        if len(exact) > 1:
            by_phone = _by_phone(exact, telefono)
            if len(by_phone) == 1:
                return record_value(by_phone[0], "id"), MATCH_PHONE
            return None, AMBIGUOUS

        wanted = " ".join(f"{nombre} {apellido}".lower().split())
        if not wanted:
            return None, NOT_FOUND
        partial = []
        for patient in self.patients:
            stored = " ".join(f"{record_value(patient, 'nombre') or ''} {record_value(patient, 'apellido') or ''}".lower().split())
            if stored and (stored in wanted or wanted in stored):
                partial.append(patient)
        if len(partial) == 1:
            return record_value(partial[0], "id"), MATCH_PARTIAL
        if len(partial) > 1:
            return None, AMBIGUOUS
        return None, NOT_FOUND


def _ficha_owners(existing: Iterable[Any]) -> Dict[str, Any]:
    owners = {}
    for patient in existing:
        ficha = normalize_ficha(record_value(patient, "numero_ficha"))
        if ficha:
            owners[ficha] = record_value(patient, "id")
    return owners


def plan_patient_import(legacy: Sequence[LegacyPatient], existing: Sequence[Any]) -> PatientImportPlan:
    """
    Split legacy patients into inserts and updates.

    The CSV is authoritative for fichas, except that a ficha already owned by
    another patient (stored, or claimed by an earlier row of this run) is
    dropped from the row and reported as a conflict. A blank or "0" ficha in
    the CSV carries no information and never clears a stored one.
    """
    unique, duplicates = dedupe_patients(legacy)
    plan = PatientImportPlan(duplicates=duplicates)
    index = PatientIndex(existing)
    owners = _ficha_owners(existing)
    claimed: Set[str] = set()

    def ficha_conflict(patient: LegacyPatient, ficha: str, patient_id: Any) -> bool:
        owner = owners.get(ficha)
        if owner is not None and str(owner) != str(patient_id):
            plan.ficha_conflicts.append(FichaConflict(patient, ficha, owner))
            return True
        if ficha in claimed:
            plan.ficha_conflicts.append(FichaConflict(patient, ficha, None))
            return True
        return False

    for patient in unique:
        candidates = index.candidates(patient.nombre, patient.apellido)
        if len(candidates) > 1:
            candidates = _by_phone(candidates, patient.telefono)
            if len(candidates) != 1:
                logger.warning(f"Paciente ambiguo en CSV, se omite: {patient.apellido}, {patient.nombre}")
                plan.ambiguous.append(patient)
                continue

        ficha = patient.numero_ficha
        if not candidates:
            if ficha and ficha_conflict(patient, ficha, None):
                patient = replace(patient, numero_ficha=None)
            elif ficha:
                claimed.add(ficha)
            plan.inserts.append(patient)
            continue

        current = candidates[0]
        patient_id = record_value(current, "id")
        changes = {}
        stored_ficha = normalize_ficha(record_value(current, "numero_ficha"))
        if ficha and ficha != stored_ficha and not ficha_conflict(patient, ficha, patient_id):
            changes["numero_ficha"] = ficha
            claimed.add(ficha)
            if stored_ficha and owners.get(stored_ficha) == patient_id:
                del owners[stored_ficha]
        for name in FILLABLE_FIELDS:
            value = getattr(patient, name)
            if value and not record_value(current, name):
                changes[name] = value

        if changes:
            plan.updates.append(PatientUpdate(patient_id, changes, patient))
        else:
            plan.unchanged += 1

    return plan


def plan_ficha_sync(legacy: Sequence[LegacyPatient], existing: Sequence[Any]) -> PatientImportPlan:
    """
    Ficha-only variant for patients already stored.

    ``inserts`` lists the CSV patients with no stored match; they are reported,
    never written.
    """
    plan = plan_patient_import(legacy, existing)
    updates = []
    for update in plan.updates:
        if "numero_ficha" in update.changes:
            updates.append(replace(update, changes={"numero_ficha": update.changes["numero_ficha"]}))
        else:
            plan.unchanged += 1
    plan.updates = updates
    return plan


def plan_appointment_import(
    legacy: Sequence[LegacyAppointment],
    index: PatientIndex,
    existing_slots: Iterable[Tuple[date, time]] = (),
) -> AppointmentImportPlan:
    """
    Resolve patients and drop repeats.

    Repeated (patient, fecha, hora) rows keep the first occurrence. A slot
    already used (stored, or by an earlier row for another patient) is
    skipped because the store allows one appointment per slot.
    """
    plan = AppointmentImportPlan()
    seen: Set[Tuple[Any, date, time]] = set()
    taken = set(existing_slots)

    for appointment in legacy:
        patient_id, outcome = index.resolve(appointment.nombre, appointment.apellido, appointment.telefono)
        if patient_id is None:
            if outcome == AMBIGUOUS:
                plan.ambiguous.append(appointment)
            else:
                plan.not_found.append(appointment)
            continue

        key = (str(patient_id), appointment.fecha, appointment.hora)
        if key in seen:
            plan.duplicates += 1
            continue
        slot = (appointment.fecha, appointment.hora)
        if slot in taken:
            plan.slot_taken.append(appointment)
            continue
        seen.add(key)
        taken.add(slot)
        plan.rows.append({
            "paciente_id": patient_id,
            "fecha": appointment.fecha,
            "hora": appointment.hora,
            "estado": appointment.estado,
            "notas": appointment.notas,
        })
    return plan
