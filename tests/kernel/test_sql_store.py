"""SQL-specific behaviour: error translation, lock keys and session scope."""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from portfolio_kernel.db.engine import get_session, reset_engine, session_scope
from portfolio_kernel.domain.dtos import DateRange, EntryKind, LedgerEntryInfo
from portfolio_kernel.exceptions import LedgerPersistenceError
from portfolio_kernel.models import PropertyModel
from portfolio_kernel.services.sql_store import advisory_lock_key


class TestAdvisoryLockKey:
    def test_fits_signed_bigint(self):
        key = advisory_lock_key(UUID("ffffffff-ffff-ffff-ffff-ffffffffffff"))
        assert 0 <= key < 2**63

    def test_stable_per_owner(self):
        owner = uuid4()
        assert advisory_lock_key(owner) == advisory_lock_key(UUID(str(owner)))


class TestPersistenceFailure:
    def test_integrity_error_becomes_persistence_error(
        self, sql_store, owner_id, make_property
    ):
        prop = make_property(sql_store, owner_id, "A")
        with sql_store.atomic(owner_id):
            pass

        orphan = LedgerEntryInfo(
            owner_id=owner_id,
            entity_id=prop.entity_id,
            kind=EntryKind.REVENUE,
            amount=Decimal("10"),
            currency="BRL",
            effective_date=date(2024, 3, 1),
            source_tag="external-payout",
            parent_entry_id=uuid4(),
        )

        with pytest.raises(LedgerPersistenceError) as exc_info:
            with sql_store.atomic(owner_id):
                sql_store.insert_entries([orphan])

        assert exc_info.value.code == "LEDGER_PERSISTENCE"
        month = DateRange(date(2024, 3, 1), date(2024, 3, 31))
        assert sql_store.list_entries(owner_id, None, month) == []


class TestSessionScope:
    def test_commits_on_success(self, engine, owner_id, test_actor_id):
        with session_scope() as session:
            session.add(
                PropertyModel(
                    owner_id=owner_id, name="Loft Centro", created_by_id=test_actor_id
                )
            )

        check = get_session()
        try:
            names = check.scalars(select(PropertyModel.name)).all()
        finally:
            check.close()
        assert names == ["Loft Centro"]

    def test_rolls_back_on_error(self, engine, owner_id, test_actor_id):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(
                    PropertyModel(
                        owner_id=owner_id, name="Loft Centro", created_by_id=test_actor_id
                    )
                )
                session.flush()
                raise RuntimeError("abort")

        check = get_session()
        try:
            assert check.scalars(select(PropertyModel)).all() == []
        finally:
            check.close()

    def test_uninitialized_engine(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_session()
