"""
기존 상담 데이터 정리

1. scheduled_date_time 이 비어 있는 상담에 date + time 을 UTC 로 보고 채운다
   (컬럼이 NOT NULL 이 되기 전에 만들어진 테이블 대상. 현재 스키마로 만든 DB 에서는 0건)
2. 예전 상태값 rescheduled 를 accepted 로 바꾼다

사용법 (back/ 에서):
    python -m scripts.migrate_consultations [--dry-run]
"""

import argparse
import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from database import SessionLocal, init_db
from logs.logging_util import LoggerSingleton
from models.consultation import Consultation, ConsultationStatus

logger = LoggerSingleton.get_logger(logger_name="migrate_consultations", level=logging.INFO)


def legacy_instant(day, time_str) -> datetime:
    """시간이 깨져 있으면 00:00 으로 본다"""
    parts = (time_str or "00:00").split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        hours, minutes = 0, 0
    return datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)


def backfill_scheduled_date_time(db: Session, *, dry_run: bool = False) -> tuple[int, int]:
    """(updated, errors) 반환"""
    rows = db.execute(
        select(Consultation.id, Consultation.date, Consultation.time)
        .where(Consultation.scheduled_date_time.is_(None))
    ).all()
    logger.info(f"Found {len(rows)} consultations without scheduled_date_time")

    updated = 0
    errors = 0
    for row in rows:
        try:
            instant = legacy_instant(row.date, row.time)
        except (TypeError, ValueError, AttributeError) as e:
            errors += 1
            logger.error(f"Cannot backfill consultation {row.id}: {e}")
            continue

        logger.info(f"Consultation {row.id}: {row.date} {row.time} -> {instant.isoformat()}")
        if not dry_run:
            db.execute(
                update(Consultation)
                .where(Consultation.id == row.id)
                .values(scheduled_date_time=instant, version=func.coalesce(Consultation.version, 0) + 1)
                .execution_options(synchronize_session=False)
            )
        updated += 1
    return updated, errors


def rewrite_legacy_rescheduled(db: Session, *, dry_run: bool = False) -> int:
    legacy = ConsultationStatus.RESCHEDULED.value
    if dry_run:
        count = db.execute(
            select(func.count(Consultation.id)).where(Consultation.status == legacy)
        ).scalar()
        logger.info(f"Would rewrite {count} consultations from {legacy} to accepted")
        return count

    result = db.execute(
        update(Consultation)
        .where(Consultation.status == legacy)
        .values(
            status=ConsultationStatus.ACCEPTED.value,
            version=func.coalesce(Consultation.version, 0) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    logger.info(f"Rewrote {result.rowcount} consultations from {legacy} to accepted")
    return result.rowcount


def migrate(db: Session, *, dry_run: bool = False) -> dict:
    updated, errors = backfill_scheduled_date_time(db, dry_run=dry_run)
    rewritten = rewrite_legacy_rescheduled(db, dry_run=dry_run)
    if dry_run:
        db.rollback()
    else:
        db.commit()
    return {"backfilled": updated, "errors": errors, "rewritten": rewritten}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Normalize legacy consultation rows")
    parser.add_argument("--dry-run", action="store_true", help="report changes without writing them")
    args = parser.parse_args(argv)

    init_db()
    db = SessionLocal()
    try:
        summary = migrate(db, dry_run=args.dry_run)
    except Exception:
        db.rollback()
        logger.exception("Migration failed")
        return 1
    finally:
        db.close()

    logger.info(
        f"Migration summary: backfilled={summary['backfilled']}, errors={summary['errors']}, "
        f"rewritten={summary['rewritten']}, dry_run={args.dry_run}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
