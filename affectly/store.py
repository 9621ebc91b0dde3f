import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from affectly.errors import Conflict, NotFound, StoreError
from affectly.models import (
    db, Profile, JournalEntry, Subscriber, PaymentTransaction,
    PREMIUM, VERIFIED, utcnow,
)

logger = logging.getLogger(__name__)


class EntryStore:
    """Journal entries, profiles and billing records over Flask-SQLAlchemy.

    Must be used inside an application context. Database failures surface
    as StoreError after the session is rolled back.
    """

    def __init__(self, database=db):
        self.db = database

    @contextmanager
    def _transaction(self, conflict_message=None):
        session = self.db.session
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.warning(f"Store conflict: {e.orig}")
            raise Conflict(conflict_message) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Store error: {e}")
            raise StoreError() from e
        except Exception:
            session.rollback()
            raise

    # ---------- Entries ----------

    def insert(self, entry):
        with self._transaction() as session:
            session.add(entry)
        return entry.id

    def query_by_user(self, user_id, limit=None):
        """Entries for one user, newest first."""
        query = (
            JournalEntry.query
            .filter_by(user_id=user_id)
            .order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return self._fetch(query)

    def query_by_user_and_date_range(self, user_id, start, end):
        query = (
            JournalEntry.query
            .filter(
                JournalEntry.user_id == user_id,
                JournalEntry.created_at >= start,
                JournalEntry.created_at < end,
            )
            .order_by(JournalEntry.created_at.desc(), JournalEntry.id.desc())
        )
        return self._fetch(query)

    def count_by_user_and_date_range(self, user_id, start, end):
        try:
            return (
                JournalEntry.query
                .filter(
                    JournalEntry.user_id == user_id,
                    JournalEntry.created_at >= start,
                    JournalEntry.created_at < end,
                )
                .count()
            )
        except SQLAlchemyError as e:
            logger.error(f"Store error: {e}")
            raise StoreError() from e

    def _fetch(self, query):
        try:
            return query.all()
        except SQLAlchemyError as e:
            logger.error(f"Store error: {e}")
            raise StoreError() from e

    # ---------- Profiles ----------

    def get_profile(self, user_id):
        profile = Profile.query.filter_by(user_id=user_id).first()
        if profile is None:
            raise NotFound(f"Profile {user_id} not found")
        return profile

    def get_profile_by_email(self, email):
        if not email:
            return None
        return Profile.query.filter(db.func.lower(Profile.email) == email.lower()).first()

    def create_profile(self, user_id, email, full_name=None):
        profile = Profile(user_id=user_id, email=email, full_name=full_name)
        with self._transaction(f"Profile for {user_id} or {email} already exists") as session:
            session.add(profile)
        return profile

    def update_profile(self, user_id, **fields):
        profile = self.get_profile(user_id)
        with self._transaction():
            for key, value in fields.items():
                setattr(profile, key, value)
            profile.updated_at = fields.get("updated_at") or utcnow()
        return profile

    # ---------- Billing ----------

    def get_subscriber(self, user_id):
        return Subscriber.query.filter_by(user_id=user_id).first()

    def upsert_subscriber(self, record):
        """Insert or update the subscriber row keyed by record["user_id"]."""
        with self._transaction() as session:
            subscriber = Subscriber.query.filter_by(user_id=record["user_id"]).first()
            if subscriber is None:
                subscriber = Subscriber(user_id=record["user_id"])
                session.add(subscriber)
            for key, value in record.items():
                setattr(subscriber, key, value)
        return subscriber

    def get_transaction(self, reference):
        return PaymentTransaction.query.filter_by(reference=reference).first()

    def record_transaction_status(self, reference, status, **fields):
        with self._transaction() as session:
            txn = self._transaction_row(session, reference)
            txn.status = status
            for key, value in fields.items():
                setattr(txn, key, value)
            txn.updated_at = utcnow()
        return txn

    def grant_premium(self, user_id, reference, email, amount_minor_units, now, subscription_end):
        """Flip the tier and mark the reference verified in one commit."""
        with self._transaction() as session:
            profile = Profile.query.filter_by(user_id=user_id).first()
            if profile is None:
                raise NotFound(f"Profile {user_id} not found")
            profile.subscription_tier = PREMIUM
            profile.updated_at = now

            txn = self._transaction_row(session, reference)
            txn.status = VERIFIED
            txn.user_id = user_id
            txn.email = email
            txn.amount_minor_units = amount_minor_units
            txn.subscription_end = subscription_end
            txn.updated_at = now
        return profile

    def _transaction_row(self, session, reference):
        txn = PaymentTransaction.query.filter_by(reference=reference).first()
        if txn is None:
            txn = PaymentTransaction(reference=reference)
            session.add(txn)
        return txn
