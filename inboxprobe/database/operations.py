"""
Database operations for InboxProbe.
One table:
1. probe_results - one row per target URL with the outcome of its latest run
"""

import json
from typing import List, Dict, Any, Optional
from datetime import datetime
from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text
from sqlalchemy.orm import sessionmaker, declarative_base
from loguru import logger

Base = declarative_base()


class ProbeResult(Base):
    """Outcome of the latest signup run against a URL."""
    __tablename__ = 'probe_results'

    id = Column(Integer, primary_key=True)
    url = Column(String(2000), nullable=False, unique=True)
    email = Column(String(320))
    source = Column(String(50), default='unknown')  # 'cli', 'config', 'csv'
    status = Column(String(20), nullable=False)  # 'success', 'failed'
    final_state = Column(String(30))  # orchestrator state the run ended in
    attempts = Column(Integer, default=0)
    strategies_used = Column(Text)  # JSON array of strategy names
    error_message = Column(Text)
    diagnostics = Column(Text)  # JSON snapshot, when diagnostics are enabled
    execution_time_ms = Column(Integer, default=0)
    processed_at = Column(DateTime, default=datetime.utcnow)


class ResultStore:
    """Database operations for InboxProbe run results."""

    def __init__(self, db_url: str):
        self.engine = create_engine(db_url, echo=False)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine)
        logger.debug(f"Database initialized: {db_url}")

    def is_url_processed(self, url: str, successful_only: bool = False) -> bool:
        """Check if URL already has a recorded run."""
        session = self.Session()
        try:
            query = session.query(ProbeResult).filter(ProbeResult.url == url)
            if successful_only:
                query = query.filter(ProbeResult.status == 'success')
            return query.count() > 0
        finally:
            session.close()

    def add_result(self, url: str, status: str, email: str = None, source: str = 'unknown',
                   final_state: str = None, attempts: int = 0, strategies_used: List[str] = None,
                   error_message: str = None, diagnostics: Optional[Dict[str, Any]] = None,
                   execution_time_ms: int = 0) -> int:
        """Add a run result, replacing any earlier result for the same URL."""
        values = dict(
            email=email,
            source=source,
            status=status,
            final_state=final_state,
            attempts=attempts,
            strategies_used=json.dumps(strategies_used or []),
            error_message=error_message,
            diagnostics=json.dumps(diagnostics) if diagnostics is not None else None,
            execution_time_ms=execution_time_ms,
            processed_at=datetime.utcnow(),
        )
        session = self.Session()
        try:
            existing = session.query(ProbeResult).filter(ProbeResult.url == url).first()
            if existing:
                for key, value in values.items():
                    setattr(existing, key, value)
                session.commit()
                return existing.id

            record = ProbeResult(url=url, **values)
            session.add(record)
            session.commit()
            return record.id
        finally:
            session.close()

    def get_results(self, limit: int = 100, status: str = None) -> List[Dict[str, Any]]:
        """Get run results, newest first."""
        session = self.Session()
        try:
            query = session.query(ProbeResult)
            if status:
                query = query.filter(ProbeResult.status == status)
            records = query.order_by(ProbeResult.processed_at.desc()).limit(limit).all()

            return [{
                "id": r.id,
                "url": r.url,
                "email": r.email,
                "source": r.source,
                "status": r.status,
                "final_state": r.final_state,
                "attempts": r.attempts,
                "strategies_used": json.loads(r.strategies_used) if r.strategies_used else [],
                "error_message": r.error_message,
                "diagnostics": json.loads(r.diagnostics) if r.diagnostics else None,
                "execution_time_ms": r.execution_time_ms,
                "processed_at": r.processed_at.isoformat() if r.processed_at else None
            } for r in records]
        finally:
            session.close()

    def get_stats(self) -> Dict[str, int]:
        """Get result statistics."""
        session = self.Session()
        try:
            total = session.query(ProbeResult).count()
            successful = session.query(ProbeResult).filter(ProbeResult.status == 'success').count()
            failed = session.query(ProbeResult).filter(ProbeResult.status == 'failed').count()

            return {
                "total": total,
                "successful": successful,
                "failed": failed,
            }
        finally:
            session.close()

    def delete_result(self, record_id: int) -> bool:
        """Delete one result record."""
        session = self.Session()
        try:
            record = session.query(ProbeResult).filter(ProbeResult.id == record_id).first()
            if record:
                session.delete(record)
                session.commit()
                return True
            return False
        finally:
            session.close()

    def clear_results(self):
        """Clear all results."""
        session = self.Session()
        try:
            session.query(ProbeResult).delete()
            session.commit()
            logger.info("Cleared all probe results")
        finally:
            session.close()
