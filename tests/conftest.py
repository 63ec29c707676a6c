from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import dutysync.db as app_db
from dutysync.config import get_database_url
from dutysync import models


@pytest.fixture(autouse=True)
def reset_database(tmp_path, monkeypatch):
    db_file = tmp_path / "test_dutysync.db"
    db_url = f"sqlite:///{db_file}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.delenv("SCHEDULER_MAX_RANGE_DAYS", raising=False)

    # Rebuild DB bindings per test so every test gets its own writable SQLite file.
    app_db.engine.dispose()
    app_db.DATABASE_URL = get_database_url()
    app_db.engine = create_engine(
        app_db.DATABASE_URL,
        connect_args={"check_same_thread": False},
        pool_pre_ping=True,
    )
    app_db.SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=app_db.engine,
        expire_on_commit=False,
    )

    app_db.Base.metadata.drop_all(bind=app_db.engine)
    app_db.Base.metadata.create_all(bind=app_db.engine)
    yield
    app_db.Base.metadata.drop_all(bind=app_db.engine)
    app_db.engine.dispose()


@pytest.fixture
def db():
    session = app_db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def unit_tree(db):
    """Battalion > Alpha Company > Ops (Radio, Wire work sections) and Admin sections."""
    org = models.Organization(ruc_code="12345", name="1st Test Battalion")
    db.add(org)
    db.flush()
    battalion = models.Unit(organization_id=org.id, name="1st Bn", hierarchy_level="unit")
    db.add(battalion)
    db.flush()
    company = models.Unit(organization_id=org.id, parent_id=battalion.id, name="Alpha Co", hierarchy_level="company")
    db.add(company)
    db.flush()
    ops = models.Unit(organization_id=org.id, parent_id=company.id, name="Ops", hierarchy_level="section")
    admin = models.Unit(organization_id=org.id, parent_id=company.id, name="Admin", hierarchy_level="section")
    db.add_all([ops, admin])
    db.flush()
    radio = models.Unit(organization_id=org.id, parent_id=ops.id, name="Radio", hierarchy_level="work_section")
    wire = models.Unit(organization_id=org.id, parent_id=ops.id, name="Wire", hierarchy_level="work_section")
    db.add_all([radio, wire])
    db.commit()
    return {
        "org": org,
        "battalion": battalion,
        "company": company,
        "ops": ops,
        "admin": admin,
        "radio": radio,
        "wire": wire,
    }

