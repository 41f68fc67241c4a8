# export/table_specs.py
from __future__ import annotations

from typing import Iterable, List, Tuple

from models import ExportSpec

# Tables shipped to the raw-data bucket. Adding a table is a one-line change here.
TABLE_SPECS: Tuple[ExportSpec, ...] = (
    ExportSpec("auth_user"),
    ExportSpec("auth_userprofile"),
    ExportSpec("certificates_generatedcertificate"),
    ExportSpec("courseware_studentmodule"),
    ExportSpec("student_anonymoususerid"),
    ExportSpec("student_courseaccessrole"),
    ExportSpec("student_courseenrollment"),
    ExportSpec("student_languageproficiency"),
    ExportSpec("user_api_usercoursetag"),
    ExportSpec("verify_student_softwaresecurephotoverification"),
)

TABLE_NAMES: Tuple[str, ...] = tuple(s.name for s in TABLE_SPECS)

# Output path only; the rows come from the LMS manage command, not a query.
STRUCTURES_SPEC = ExportSpec("course_structures")


def select_specs(names: Iterable[str] | None = None) -> List[ExportSpec]:
    """Return specs for `names` in configured order (all when names is empty/None)."""
    wanted = set(names or ())
    if not wanted:
        return list(TABLE_SPECS)
    unknown = wanted - set(TABLE_NAMES)
    if unknown:
        raise ValueError(f"unknown table(s): {', '.join(sorted(unknown))}")
    return [s for s in TABLE_SPECS if s.name in wanted]
