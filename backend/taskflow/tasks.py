from celery import shared_task
from sqlalchemy.orm import Session
from taskflow.core.database import SessionLocal
from taskflow.services.ledger import sweep_expired


@shared_task(name="taskflow.tasks.prune_refresh_tokens", bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={"max_retries": 5})
def prune_refresh_tokens(self):
    db: Session = SessionLocal()
    try:
        return sweep_expired(db)
    finally:
        db.close()
