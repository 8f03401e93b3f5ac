"""Read-only access to the school records that back tool handlers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from eduassist.storage.database import Database
from eduassist.storage.models import FeedbackRow, GradeRow, StudentRef, ViolationRow


class RecordStore(ABC):
    """Boundary to the external record system. Every query is scoped to one student."""

    @abstractmethod
    async def linked_students(self, parent_id: str) -> list[StudentRef]:
        """Students the parent is allowed to see."""
        ...

    @abstractmethod
    async def grades(
        self,
        student_id: str,
        since: datetime,
        until: Optional[datetime] = None,
        subject: Optional[str] = None,
    ) -> list[GradeRow]:
        ...

    @abstractmethod
    async def feedback(
        self,
        student_id: str,
        since: datetime,
        subject: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[FeedbackRow]:
        ...

    @abstractmethod
    async def violations(
        self,
        student_id: str,
        since: datetime,
        until: Optional[datetime] = None,
        severity: Optional[str] = None,
    ) -> list[ViolationRow]:
        ...


class SqliteRecordStore(RecordStore):
    """RecordStore over the local SQLite tables."""

    def __init__(self, db: Database):
        self._db = db

    async def linked_students(self, parent_id: str) -> list[StudentRef]:
        cursor = await self._db.conn.execute(
            """SELECT s.id, s.full_name, s.student_code
               FROM parent_student_relationships r
               JOIN students s ON s.id = r.student_id
               WHERE r.parent_id = ?
               ORDER BY s.full_name""",
            (parent_id,),
        )
        rows = await cursor.fetchall()
        return [StudentRef(row["id"], row["full_name"], row["student_code"]) for row in rows]

    async def grades(self, student_id, since, until=None, subject=None) -> list[GradeRow]:
        sql = "SELECT * FROM submission_grades WHERE student_id = ? AND submission_date >= ?"
        params: list = [student_id, since.isoformat()]
        if until is not None:
            sql += " AND submission_date <= ?"
            params.append(until.isoformat())
        if subject:
            sql += " AND (subject_name LIKE ? OR subject_name_en LIKE ?)"
            params.extend([f"%{subject}%", f"%{subject}%"])
        sql += " ORDER BY submission_date DESC"
        cursor = await self._db.conn.execute(sql, params)
        return [
            GradeRow(
                subject_name=row["subject_name"],
                grade=row["grade"],
                submission_date=datetime.fromisoformat(row["submission_date"]),
                subject_name_en=row["subject_name_en"],
            )
            for row in await cursor.fetchall()
        ]

    async def feedback(self, student_id, since, subject=None, limit=None) -> list[FeedbackRow]:
        sql = "SELECT * FROM teacher_feedback WHERE student_id = ? AND created_at >= ?"
        params: list = [student_id, since.isoformat()]
        if subject:
            sql += " AND subject_name LIKE ?"
            params.append(f"%{subject}%")
        sql += " ORDER BY created_at DESC"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)
        cursor = await self._db.conn.execute(sql, params)
        return [
            FeedbackRow(
                subject_name=row["subject_name"],
                teacher_name=row["teacher_name"],
                rating=row["rating"],
                created_at=datetime.fromisoformat(row["created_at"]),
                comment=row["comment"],
                ai_summary=row["ai_summary"],
                week_number=row["week_number"],
            )
            for row in await cursor.fetchall()
        ]

    async def violations(self, student_id, since, until=None, severity=None) -> list[ViolationRow]:
        sql = "SELECT * FROM student_violations WHERE student_id = ? AND recorded_at >= ?"
        params: list = [student_id, since.isoformat()]
        if until is not None:
            sql += " AND recorded_at <= ?"
            params.append(until.isoformat())
        if severity:
            sql += " AND severity = ?"
            params.append(severity)
        sql += " ORDER BY recorded_at DESC"
        cursor = await self._db.conn.execute(sql, params)
        return [
            ViolationRow(
                severity=row["severity"],
                violation_type=row["violation_type"],
                recorded_at=datetime.fromisoformat(row["recorded_at"]),
                description=row["description"],
                category=row["category"],
                recorded_by=row["recorded_by"],
            )
            for row in await cursor.fetchall()
        ]
