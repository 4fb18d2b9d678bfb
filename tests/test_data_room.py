"""Unit tests for data room rules: health, folder mapping, upload validation, approval.

Pure functions only; no database or storage backend is involved.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.app.data_room.approval import (
    ApprovalTransitionError,
    MissingRevisionNotesError,
    approve,
    request_revisions,
    submit_for_review,
)
from src.app.data_room.folder_mapping import map_file_to_folder
from src.app.data_room.health import approval_completion, compute_health, percent
from src.app.data_room.schemas import DocumentRead, FolderRead
from src.app.data_room.templates import STANDARD_FOLDERS
from src.app.data_room.validation import (
    FileValidationError,
    MaliciousContentError,
    file_extension,
    sanitize_filename,
    storage_safe_name,
    validate_upload,
)
from src.app.deals.schemas import ApprovalStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _folder(folder_id: str, name: str, **kwargs) -> FolderRead:
    return FolderRead(id=folder_id, deal_id="deal-1", name=name, **kwargs)


def _doc(doc_id: str, folder_id: str | None) -> DocumentRead:
    return DocumentRead(
        id=doc_id,
        deal_id="deal-1",
        folder_id=folder_id,
        file_name=f"{doc_id}.pdf",
        file_path=f"deal-1/{doc_id}.pdf",
    )


# ── Health ──────────────────────────────────────────────────────────────────


class TestHealth:
    def test_percent_rounds_half_up(self) -> None:
        assert percent(1, 8) == 13  # 12.5
        assert percent(1, 3) == 33
        assert percent(2, 3) == 67
        assert percent(0, 0) == 0

    def test_required_folders_drive_health(self) -> None:
        folders = [
            _folder("f1", "Financials", is_required=True),
            _folder("f2", "Operations", is_required=True),
            _folder("f3", "Miscellaneous", is_required=False),
        ]
        docs = [_doc("d1", "f1"), _doc("d2", "f3")]
        health = compute_health(folders, docs)
        assert health.total_folders == 3
        assert health.required_folders == 2
        assert health.folders_with_documents == 2
        assert health.required_folders_with_documents == 1
        assert health.health_percentage == 50
        assert health.is_complete is False
        assert health.missing_required_folders == ["Operations"]

    def test_no_required_folders_uses_all_active(self) -> None:
        folders = [
            _folder("f1", "A", is_required=False),
            _folder("f2", "B", is_required=False),
            _folder("f3", "C", is_required=False),
            _folder("f4", "D", is_required=False),
        ]
        health = compute_health(folders, [_doc("d1", "f1")])
        assert health.health_percentage == 25

    def test_not_applicable_folders_are_excluded(self) -> None:
        folders = [
            _folder("f1", "Financials"),
            _folder("f2", "Human Resources", is_not_applicable=True),
        ]
        health = compute_health(folders, [_doc("d1", "f1")])
        assert health.total_folders == 1
        assert health.health_percentage == 100
        assert health.is_complete is True

    def test_unfiled_documents_count_but_fill_nothing(self) -> None:
        folders = [_folder("f1", "Financials")]
        health = compute_health(folders, [_doc("d1", None)])
        assert health.total_documents == 1
        assert health.health_percentage == 0

    def test_empty_room(self) -> None:
        health = compute_health([], [])
        assert health.health_percentage == 0
        assert health.is_complete is False

    def test_approval_completion_counts_every_folder(self) -> None:
        folders = [
            _folder("f1", "A"),
            _folder("f2", "B", is_not_applicable=True),
            _folder("f3", "C"),
        ]
        assert approval_completion(folders, [_doc("d1", "f1")]) == 33


# ── Folder Mapping ──────────────────────────────────────────────────────────


class TestFolderMapping:
    @pytest.fixture
    def folders(self) -> list[FolderRead]:
        return [
            _folder(f"f{t.index_number}", t.name) for t in STANDARD_FOLDERS
        ]

    def test_financial_keywords(self, folders) -> None:
        assert map_file_to_folder("2024 P&L Statement.xlsx", folders) == "f2"
        assert map_file_to_folder("tax_return_2023.pdf", folders) == "f2"

    def test_legal_keywords(self, folders) -> None:
        assert map_file_to_folder("Shareholder Agreement.docx", folders) == "f1"

    def test_hr_keywords(self, folders) -> None:
        assert map_file_to_folder("payroll-march.csv", folders) == "f9"

    def test_no_match(self, folders) -> None:
        assert map_file_to_folder("photo.png", folders) is None

    def test_no_folders(self) -> None:
        assert map_file_to_folder("income.pdf", []) is None

    def test_falls_through_when_group_has_no_folder(self) -> None:
        folders = [_folder("ops", "Operations")]
        # "financial" matches the first group but no finance folder exists
        assert map_file_to_folder("financial operations manual.pdf", folders) == "ops"


# ── Upload Validation ───────────────────────────────────────────────────────


class TestValidation:
    def test_valid_pdf(self) -> None:
        result = validate_upload("Report.PDF", "application/pdf", b"%PDF-1.4")
        assert result.extension == ".pdf"
        assert result.mime_type == "application/pdf"
        assert result.size == 8

    def test_too_large(self) -> None:
        with pytest.raises(FileValidationError, match="exceeds"):
            validate_upload("a.pdf", "application/pdf", b"x" * 11, max_size=10)

    def test_executable_rejected(self) -> None:
        with pytest.raises(FileValidationError, match="Executable"):
            validate_upload("setup.exe", "application/octet-stream", b"MZ")

    def test_unknown_extension_rejected(self) -> None:
        with pytest.raises(FileValidationError, match="not allowed"):
            validate_upload("notes.md", "text/plain", b"hi")

    def test_mime_mismatch_rejected(self) -> None:
        with pytest.raises(FileValidationError, match="Invalid file type"):
            validate_upload("report.pdf", "application/zip", b"PK")

    def test_mime_parameters_ignored(self) -> None:
        result = validate_upload("notes.txt", "text/plain; charset=utf-8", b"hello")
        assert result.mime_type == "text/plain"

    def test_reserved_name_rejected(self) -> None:
        with pytest.raises(FileValidationError, match="reserved"):
            validate_upload("con.txt", "text/plain", b"hello")

    def test_long_name_rejected(self) -> None:
        with pytest.raises(FileValidationError, match="too long"):
            validate_upload("a" * 300 + ".pdf", "application/pdf", b"%PDF")

    def test_script_in_text_file_rejected(self) -> None:
        content = b"name,value\n<script>alert(1)</script>\n"
        with pytest.raises(MaliciousContentError) as exc_info:
            validate_upload("data.csv", "text/csv", content)
        assert "script" in exc_info.value.pattern

    def test_binary_files_are_not_scanned(self) -> None:
        validate_upload("deck.pdf", "application/pdf", b"javascript:void(0)")

    def test_file_extension(self) -> None:
        assert file_extension("archive.tar.GZ") == ".gz"
        assert file_extension("README") == ""

    def test_sanitizers(self) -> None:
        assert sanitize_filename('q1:"report"?.pdf') == "q1__report__.pdf"
        assert sanitize_filename("../etc/passwd") == "_/etc/passwd"
        assert storage_safe_name("Q1 report (final).pdf") == "Q1_report__final_.pdf"


# ── Approval Workflow ───────────────────────────────────────────────────────


class TestApproval:
    def test_submit_from_draft(self) -> None:
        changes = submit_for_review(ApprovalStatus.DRAFT, NOW)
        assert changes == {
            "approval_status": "under_review",
            "submitted_for_review_at": NOW,
        }

    def test_submit_without_status(self) -> None:
        assert submit_for_review(None, NOW)["approval_status"] == "under_review"

    def test_resubmit_after_revisions(self) -> None:
        changes = submit_for_review(ApprovalStatus.NEEDS_REVISION, NOW)
        assert changes["approval_status"] == "under_review"

    def test_cannot_submit_while_under_review(self) -> None:
        with pytest.raises(ApprovalTransitionError):
            submit_for_review(ApprovalStatus.UNDER_REVIEW, NOW)

    def test_approve(self) -> None:
        changes = approve(ApprovalStatus.UNDER_REVIEW, NOW, "admin-1", "Looks good")
        assert changes["approval_status"] == "approved"
        assert changes["approved_by"] == "admin-1"
        assert changes["approval_notes"] == "Looks good"

    def test_cannot_approve_draft(self) -> None:
        with pytest.raises(ApprovalTransitionError):
            approve(ApprovalStatus.DRAFT, NOW, "admin-1")

    def test_request_revisions_needs_notes(self) -> None:
        with pytest.raises(MissingRevisionNotesError):
            request_revisions(ApprovalStatus.UNDER_REVIEW, NOW, "   ")

    def test_request_revisions(self) -> None:
        changes = request_revisions(
            ApprovalStatus.UNDER_REVIEW, NOW, "  Add 2023 tax returns "
        )
        assert changes["approval_status"] == "needs_revision"
        assert changes["revision_notes"] == "Add 2023 tax returns"

    def test_cannot_request_revisions_on_approved(self) -> None:
        with pytest.raises(ApprovalTransitionError):
            request_revisions(ApprovalStatus.APPROVED, NOW, "More docs")
