from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from groupgate.config import get_settings
from groupgate.database import create_db_engine, import_all_models
from groupgate.models.base import Base
from groupgate.models.group import Group
from groupgate.models.user import User
from groupgate.security.groups.service import GroupAccessService


@pytest.mark.requires_db
def test_concurrent_reader_never_sees_empty_intermediate_state():
    import_all_models()
    engine = create_db_engine(get_settings().TEST_DATABASE_URL)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    setup = SessionLocal()
    user = User(username="alice")
    sales = Group(name="Sales")
    support = Group(name="Support")
    setup.add_all([user, sales, support])
    setup.flush()
    GroupAccessService(setup, User).set_group_ids_access_map(user, {sales.id: "read"})
    setup.commit()
    setup.close()

    writer = SessionLocal()
    reader = SessionLocal()
    try:
        writer_user = writer.get(User, user.id)
        GroupAccessService(writer, User).set_group_ids_access_map(
            writer_user, {support.id: "write"}
        )

        assert GroupAccessService(reader, User).group_ids_access_map(user.id) == {
            sales.id: ["read", "full"]
        }
        reader.rollback()

        writer.commit()

        assert GroupAccessService(reader, User).group_ids_access_map(user.id) == {
            support.id: ["write", "full"]
        }
    finally:
        writer.close()
        reader.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
