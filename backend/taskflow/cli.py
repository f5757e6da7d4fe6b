from pathlib import Path

import typer
import uvicorn
from alembic import command
from alembic.config import Config
from sqlalchemy.orm import Session
from taskflow.core.config import settings
from taskflow.core.database import SessionLocal
from taskflow.core.security import hash_password
from taskflow.services.ledger import sweep_expired
from taskflow.services.users import CredentialStore

app = typer.Typer()

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


@app.command()
def create_user(email: str, name: str, password: str = typer.Option(..., prompt=True, hide_input=True)):
    db: Session = SessionLocal()
    try:
        store = CredentialStore(db)
        if store.get_by_email(email):
            typer.echo("User already exists")
            raise typer.Exit(code=1)
        store.create(email=email, name=name, hashed_password=hash_password(password))
        db.commit()
        typer.echo("User created")
    finally:
        db.close()


@app.command()
def prune_tokens():
    db: Session = SessionLocal()
    try:
        count = sweep_expired(db)
    finally:
        db.close()
    typer.echo(f"Pruned {count} expired refresh tokens")


@app.command()
def migrate(revision: str = "head"):
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(config, revision)


@app.command()
def serve():
    from taskflow.main import app as api

    # uvicorn handles SIGINT/SIGTERM itself.
    uvicorn.run(api, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()
