"""
Google Sheets export of lab completion.

For each configured sheet the exporter marks every student who finished
a lab in that lab's column and stamps the sheet with the update time.
"""
import logging
import random
from datetime import datetime, timezone

import gspread
from oauth2client.service_account import ServiceAccountCredentials

from .config import DEFAULT_EMOJI_VARIANTS, GSheetJob
from .store import ScoreStore, StorageError

logger = logging.getLogger(__name__)

SCOPE = ["https://spreadsheets.google.com/feeds", "https://www.googleapis.com/auth/drive"]
DONE_MARK = "✓"


def excel_col_to_index(col: str) -> int:
    """
    Convert Excel-style column label to 1-based index.

    Examples:
        >>> excel_col_to_index("D")
        4
        >>> excel_col_to_index("AA")
        27
    """
    col = col.upper()
    index = 0
    for char in col:
        index = index * 26 + (ord(char) - ord('A') + 1)
    return index


def format_update_stamp(now: datetime, emoji: str) -> str:
    """
    Examples:
        >>> format_update_stamp(datetime(2024, 3, 5, 9, 7), "🍩")
        'UPD: 5 March 09:07 🍩'
    """
    return f"UPD: {now.day} {now.strftime('%B %H:%M')} {emoji}"


class SheetsExporter:
    """Writes completion marks for one course into one worksheet."""

    def __init__(
        self,
        job: GSheetJob,
        store: ScoreStore,
        emoji_variants: list[str] | None = None,
        client: gspread.Client | None = None,
    ):
        """
        Args:
            job: Sheet location and lab column mapping
            store: Store with finish events and lab scores
            emoji_variants: Decorations picked at random for the update stamp
            client: Authorized gspread client; created from job.credentials_path if omitted
        """
        self.job = job
        self.store = store
        self.emoji_variants = emoji_variants or DEFAULT_EMOJI_VARIANTS
        self._client = client

    @property
    def client(self) -> gspread.Client:
        if self._client is None:
            creds = ServiceAccountCredentials.from_json_keyfile_name(self.job.credentials_path, SCOPE)
            self._client = gspread.authorize(creds)
        return self._client

    def read_students(self, worksheet) -> dict[str, int]:
        """Map student ids from students_range to their 1-based sheet rows."""
        students = {}
        for offset, row in enumerate(worksheet.get(self.job.students_range)):
            if row and str(row[0]).strip():
                students[str(row[0]).strip()] = self.job.first_student_row + offset
        return students

    def cell_value(self, course: str, lab: str) -> str | int:
        """Value written for a finished lab: a check mark or the lab's base score."""
        if self.job.scoring:
            lab_score = self.store.get_lab_score(course, lab)
            if lab_score is not None:
                return lab_score.base_score
        return DONE_MARK

    def export(self, course: str) -> int:
        """
        Export completion marks for a course.

        Students without a finish event for a lab are left untouched.

        Returns:
            Number of cells written, not counting the update stamp
        """
        worksheet = self.client.open_by_key(self.job.sheet_id).worksheet(self.job.sheet_name)
        students = self.read_students(worksheet)
        logger.info(f"Exporting {course} to sheet '{self.job.sheet_name}': {len(students)} students")

        updated = 0
        for lab, column in self.job.labs.items():
            col_idx = excel_col_to_index(column)
            value = self.cell_value(course, lab)

            for student, row_idx in students.items():
                try:
                    event = self.store.get_student_finish_event(course, lab, student)
                except StorageError as exc:
                    logger.warning(f"Skipping {student} lab {lab}: {exc}")
                    continue
                if event is None:
                    continue

                worksheet.update_cell(row_idx, col_idx, value)
                updated += 1

        stamp = format_update_stamp(datetime.now(timezone.utc), random.choice(self.emoji_variants))
        worksheet.update_acell(self.job.timestamp_range, stamp)
        logger.info(f"Export of {course} finished, {updated} cells updated")
        return updated
