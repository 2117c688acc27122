# Overview: Service-layer operations for bulk import; parses uploads and applies them row by row.

"""
Bulk Import

Modes:
    catalog     name, base_price, stock, image_ref
    add_points  username, points_to_add
    employees   username, name, password, points, role

Every row runs in its own savepoint. A bad row is rolled back and reported;
the rest of the file still lands. Header names are matched case-insensitively.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from openpyxl import Workbook, load_workbook

from ..errors import InvalidInputError, RewardsError
from ..extensions import db
from ..models import Account
from ..validation import parse_int
from . import accounts_service, catalog_service
from .concurrency import begin_serializable, lock_for_update

logger = logging.getLogger(__name__)

MODE_CATALOG = "catalog"
MODE_ADD_POINTS = "add_points"
MODE_EMPLOYEES = "employees"

TEMPLATES = {
    MODE_CATALOG: (
        "catalog_template.xlsx",
        ["name", "base_price", "stock", "image_ref"],
        [["Company Tumbler", 500, 10, "https://placehold.co/300x300/e2e8f0/4a5568?text=Tumbler"]],
    ),
    MODE_ADD_POINTS: (
        "add_points_template.xlsx",
        ["username", "points_to_add"],
        [["employee1", 100]],
    ),
    MODE_EMPLOYEES: (
        "employee_list_template.xlsx",
        ["username", "password", "name", "points", "role"],
        [["new.employee", "password", "New Employee", 0, "employee"]],
    ),
}
VALID_MODES = set(TEMPLATES)

CSV_EXTENSIONS = {"csv"}
JSON_EXTENSIONS = {"json"}
EXCEL_EXTENSIONS = {"xlsx", "xlsm", "xltx", "xltm"}


@dataclass
class ImportReport:
    mode: str
    applied: int = 0
    skipped: int = 0
    errors: int = 0
    created: int = 0
    updated: int = 0
    issues: list[dict] = field(default_factory=list)

    def skip(self, row_number: int, message: str) -> None:
        self.skipped += 1
        self.issues.append({"row": row_number, "status": "skipped", "message": message})

    def fail(self, row_number: int, message: str) -> None:
        self.errors += 1
        self.issues.append({"row": row_number, "status": "error", "message": message})

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "applied": self.applied,
            "skipped": self.skipped,
            "errors": self.errors,
            "created": self.created,
            "updated": self.updated,
            "issues": self.issues,
        }


def _normalize_row(raw: dict) -> dict[str, Any]:
    row = {}
    for key, value in raw.items():
        if key is None:
            continue
        name = str(key).strip().lower()
        if not name:
            continue
        if isinstance(value, str):
            value = value.strip()
        row[name] = None if value == "" else value
    return row


def read_rows(filename: str, stream: BinaryIO) -> list[dict[str, Any]]:
    """
    Parse an uploaded .csv, .json or .xlsx file into a list of row dicts.

    JSON may be a list of objects or {"rows": [...]}. Blank rows are dropped.
    """
    ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""

    if ext in CSV_EXTENSIONS:
        text = stream.read().decode("utf-8-sig")
        rows = list(csv.DictReader(io.StringIO(text)))
    elif ext in JSON_EXTENSIONS:
        try:
            rows = json.load(stream)
        except ValueError as exc:
            raise InvalidInputError(f"Invalid JSON: {exc}")
        if isinstance(rows, dict):
            rows = rows.get("rows", [])
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise InvalidInputError("JSON upload must be a list of objects")
    elif ext in EXCEL_EXTENSIONS:
        try:
            wb = load_workbook(stream, read_only=True, data_only=True)
        except Exception as exc:  # noqa: BLE001 - openpyxl raises assorted zip/xml errors
            raise InvalidInputError("Could not read spreadsheet") from exc
        sheet = wb.worksheets[0]
        data = list(sheet.values)
        wb.close()
        if not data:
            rows = []
        else:
            headers = [str(h) if h is not None else "" for h in data[0]]
            rows = [
                {headers[i]: row[i] for i in range(min(len(headers), len(row)))}
                for row in data[1:]
            ]
    else:
        raise InvalidInputError("Unsupported file format", details={"filename": filename})

    normalized = [_normalize_row(r) for r in rows]
    return [r for r in normalized if any(v is not None for v in r.values())]


def _run_rows(report: ImportReport, rows: list[dict], apply_row) -> ImportReport:
    # One write transaction for the whole file; rows are savepoints inside it
    begin_serializable()
    # Data rows start at 2 in a spreadsheet, after the header
    for row_number, row in enumerate(rows, start=2):
        nested = db.session.begin_nested()
        try:
            apply_row(report, row_number, row)
            nested.commit()
        except RewardsError as exc:
            nested.rollback()
            report.fail(row_number, str(exc))
    db.session.commit()
    logger.info(
        "Import %s: %d applied, %d skipped, %d errors",
        report.mode, report.applied, report.skipped, report.errors,
    )
    return report


def import_catalog_rows(rows: list[dict]) -> ImportReport:
    def _apply(report: ImportReport, row_number: int, row: dict):
        catalog_service.create_item(
            name=row.get("name"),
            base_price=row.get("base_price", row.get("price")),
            stock=row.get("stock"),
            image_ref=row.get("image_ref", row.get("image")),
            commit=False,
        )
        report.applied += 1
        report.created += 1

    return _run_rows(ImportReport(mode=MODE_CATALOG), rows, _apply)


def import_points_rows(rows: list[dict]) -> ImportReport:
    """Unknown usernames and non-integer amounts are skipped, not fatal."""
    def _apply(report: ImportReport, row_number: int, row: dict):
        username = row.get("username")
        account = accounts_service.get_by_username(username) if username else None
        if not account or not account.is_active:
            report.skip(row_number, f"Unknown username: {username}")
            return
        try:
            amount = parse_int(row.get("points_to_add"), "points_to_add")
        except InvalidInputError as exc:
            report.skip(row_number, str(exc))
            return
        accounts_service.add_points(account.id, amount, commit=False)
        report.applied += 1
        report.updated += 1

    return _run_rows(ImportReport(mode=MODE_ADD_POINTS), rows, _apply)


def import_employee_rows(rows: list[dict]) -> ImportReport:
    """
    Upsert by username. Existing accounts get name, points, password and
    role updated where the row provides them; new accounts are created with
    requires_password_change set.
    """
    def _apply(report: ImportReport, row_number: int, row: dict):
        username = row.get("username")
        if not username:
            report.skip(row_number, "username is required")
            return
        username = str(username)
        existing = accounts_service.get_by_username(username)
        if existing:
            patch = accounts_service.parse_profile({k: v for k, v in row.items() if v is not None and k != "username"})
            account = lock_for_update(db.session.query(Account).filter_by(id=existing.id)).first()
            accounts_service.apply_profile(account, patch)
            account.is_active = True
            db.session.flush()
            report.updated += 1
        else:
            if not row.get("name"):
                report.skip(row_number, f"name is required for new account {username}")
                return
            accounts_service.provision_account(
                username=username,
                display_name=row.get("name"),
                password=row.get("password"),
                role=row.get("role"),
                points_balance=row.get("points") or 0,
                requires_password_change=True,
                commit=False,
            )
            report.created += 1
        report.applied += 1

    return _run_rows(ImportReport(mode=MODE_EMPLOYEES), rows, _apply)


IMPORTERS = {
    MODE_CATALOG: import_catalog_rows,
    MODE_ADD_POINTS: import_points_rows,
    MODE_EMPLOYEES: import_employee_rows,
}


def import_rows(mode: str, rows: list[dict]) -> ImportReport:
    if mode not in IMPORTERS:
        raise InvalidInputError(f"mode must be one of {', '.join(sorted(VALID_MODES))}")
    return IMPORTERS[mode]([_normalize_row(r) for r in rows])


def import_file(mode: str, filename: str, stream: BinaryIO) -> ImportReport:
    if mode not in IMPORTERS:
        raise InvalidInputError(f"mode must be one of {', '.join(sorted(VALID_MODES))}")
    return IMPORTERS[mode](read_rows(filename, stream))


def build_template(mode: str) -> tuple[str, bytes]:
    """Return (filename, xlsx bytes) for a mode's sample sheet."""
    if mode not in TEMPLATES:
        raise InvalidInputError(f"mode must be one of {', '.join(sorted(VALID_MODES))}")
    filename, headers, samples = TEMPLATES[mode]
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Sheet1"
    sheet.append(headers)
    for sample in samples:
        sheet.append(sample)
    buffer = io.BytesIO()
    wb.save(buffer)
    return filename, buffer.getvalue()
