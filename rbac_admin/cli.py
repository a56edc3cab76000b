"""RBAC Admin CLI tool (rbacctl)."""

import typer

app = typer.Typer(name="rbacctl", help="RBAC Admin CLI")
db_app = typer.Typer(help="Database management commands")
tokens_app = typer.Typer(help="Credential housekeeping commands")
app.add_typer(db_app, name="db")
app.add_typer(tokens_app, name="tokens")


@db_app.command("create")
def db_create():
    """Create all tables that don't exist yet."""
    from rbac_admin.db.base import Base
    from rbac_admin.db.session import engine
    import rbac_admin.models  # noqa: F401  registers the models

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created (or already exist)")


@db_app.command("seed")
def db_seed():
    """Seed permissions, system roles, and the super-admin."""
    from rbac_admin.db.session import SessionLocal
    from rbac_admin.db.seeds.seed_roles import seed_roles
    from rbac_admin.db.seeds.seed_super_admin import seed_super_admin

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_super_admin(db)
    finally:
        db.close()
    typer.echo("✅ All seeds applied")


@db_app.command("drop")
def db_drop():
    """Drop every table (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP all tables. Continue?")
    if not confirm:
        raise typer.Abort()
    from rbac_admin.db.base import Base
    from rbac_admin.db.session import engine
    import rbac_admin.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    typer.echo("✅ Tables dropped")


@tokens_app.command("purge-expired")
def purge_expired_tokens():
    """Delete password reset tokens past their expiry."""
    from rbac_admin.db.session import SessionLocal
    from rbac_admin.services.password_service import password_reset_service

    db = SessionLocal()
    try:
        removed = password_reset_service.purge_expired_tokens(db)
    finally:
        db.close()
    typer.echo(f"✅ Removed {removed} expired reset tokens")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("rbac_admin.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
