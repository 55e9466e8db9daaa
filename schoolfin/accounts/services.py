"""
accounts/services.py
────────────────────
Schools, staff accounts, per-school settings, and the role scope that
decides which students, fees and installments an account can see.

SchoolDirectory
    list_schools / get_school / save_school / delete_school
    list_accounts / get_account / save_account / delete_account
    authenticate(username, password)  – checks the hash, records the login
    record_login(account_id)
    get_settings(school_id) / save_settings(school_id, values)

scope_for(account) -> Scope
    Scope(school_id, grade_levels).as_filter() feeds the finances queries.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings as django_settings
from django.contrib.auth.hashers import check_password, identify_hasher, make_password
from django.core.exceptions import ValidationError

from core.entities import ACCOUNTS, SCHOOLS, SETTINGS
from core.exceptions import NotFound
from core.utils import as_amount, as_date
from finances.choices import INSTALLMENT_PLANS, Grade

from .choices import Role

logger = logging.getLogger(__name__)

SCHOOL_PROFILE_FIELDS = ('name', 'email', 'phone', 'address', 'logo')


def _is_hashed(password):
    try:
        identify_hasher(password)
    except ValueError:
        return False
    return True


# ── Role scope ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Scope:
    """What an account may see.  None means unrestricted."""

    school_id: Optional[str] = None
    grade_levels: Optional[Tuple[str, ...]] = None

    def as_filter(self):
        return {'school_id': self.school_id, 'grade_levels': self.grade_levels}


def scope_for(account):
    role = account.get('role')
    if role == Role.ADMIN:
        return Scope()
    if role == Role.GRADE_MANAGER:
        return Scope(account.get('school_id'), tuple(account.get('grade_levels') or ()))
    return Scope(account.get('school_id'))


# ── Directory ─────────────────────────────────────────────────────────────────

class SchoolDirectory:

    def __init__(self, store):
        self.store = store

    # Schools

    def list_schools(self):
        return self.store.list(SCHOOLS)

    def get_school(self, school_id):
        return self.store.get(SCHOOLS, school_id)

    def save_school(self, school):
        school = dict(school)
        if not (school.get('name') or '').strip():
            raise ValidationError({'name': 'The school name is required.'})

        start = as_date(school.get('subscription_start'))
        end = as_date(school.get('subscription_end'))
        if start and end and end < start:
            raise ValidationError({
                'subscription_end': 'The subscription cannot end before it starts.',
            })
        school['subscription_start'] = start.isoformat() if start else None
        school['subscription_end'] = end.isoformat() if end else None
        school['active'] = bool(school.get('active', True))

        saved = self.store.upsert(SCHOOLS, school)
        logger.info('Saved school %s (%s)', saved['name'], saved['id'])
        return saved

    def delete_school(self, school_id):
        self.store.delete(SCHOOLS, school_id)
        logger.info('Deleted school %s', school_id)

    # Accounts

    def list_accounts(self, school_id=None):
        if school_id:
            return self.store.list(ACCOUNTS, lambda account: account.get('school_id') == school_id)
        return self.store.list(ACCOUNTS)

    def get_account(self, account_id):
        return self.store.get(ACCOUNTS, account_id)

    def save_account(self, account):
        """
        Validate and store a staff account.  A plain password is hashed; an
        update without a password keeps the stored hash.
        """
        account = dict(account)
        role = account.get('role')
        if role not in Role.values:
            raise ValidationError({'role': f'Unknown role {role!r}.'})
        if role != Role.ADMIN and not account.get('school_id'):
            raise ValidationError({'school_id': 'School accounts must belong to a school.'})

        username = (account.get('username') or '').strip()
        if not username:
            raise ValidationError({'username': 'A username is required.'})
        account['username'] = username
        taken = self.store.list(
            ACCOUNTS,
            lambda other: other.get('username') == username and other.get('id') != account.get('id'),
        )
        if taken:
            raise ValidationError({'username': f'The username {username!r} is already in use.'})

        if role == Role.GRADE_MANAGER:
            grade_levels = list(account.get('grade_levels') or [])
            unknown = [grade for grade in grade_levels if grade not in Grade.values]
            if unknown:
                raise ValidationError({'grade_levels': f'Unknown grades: {unknown}.'})
            account['grade_levels'] = grade_levels
        else:
            account['grade_levels'] = None

        if role == Role.ADMIN:
            account['school_id'] = None
        school = self.get_school(account.get('school_id'))
        if school is not None:
            account['school_name'] = school.get('name', '')
            account['school_logo'] = school.get('logo', '')

        if account.get('password'):
            if not _is_hashed(account['password']):
                account['password'] = make_password(account['password'])
        elif account.get('id'):
            stored = self.get_account(account['id'])
            if stored is not None:
                account['password'] = stored.get('password')
        account.setdefault('last_login', None)

        return self.store.upsert(ACCOUNTS, account)

    def delete_account(self, account_id):
        self.store.delete(ACCOUNTS, account_id)

    def record_login(self, account_id):
        account = self.get_account(account_id)
        if account is None:
            raise NotFound(ACCOUNTS, account_id)
        account['last_login'] = self.store.clock().isoformat()
        return self.store.upsert(ACCOUNTS, account)

    def authenticate(self, username, password):
        """Return the account (with its login recorded) or None."""
        for account in self.store.list(ACCOUNTS, lambda a: a.get('username') == username):
            if account.get('password') and check_password(password, account['password']):
                return self.record_login(account['id'])
        logger.info('Failed login for %r', username)
        return None

    # Settings

    def _settings_record(self, school_id):
        matches = self.store.list(SETTINGS, lambda record: record.get('school_id') == school_id)
        return matches[0] if matches else None

    def get_settings(self, school_id):
        """Stored settings for *school_id*, or defaults built from the school."""
        record = self._settings_record(school_id)
        if record is not None:
            return record

        defaults = dict(getattr(django_settings, 'LEDGER_DEFAULT_SETTINGS', {}))
        school = self.get_school(school_id) or {}
        for field in SCHOOL_PROFILE_FIELDS:
            if school.get(field):
                defaults[field] = school[field]
        defaults['school_id'] = school_id
        return defaults

    def save_settings(self, school_id, values):
        """
        Store settings for a school, then copy its profile fields onto the
        school record and its name/logo onto the school's accounts.
        """
        record = {**self.get_settings(school_id), **values, 'school_id': school_id}

        installments = int(record.get('default_installments') or 1)
        if installments not in INSTALLMENT_PLANS:
            raise ValidationError({'default_installments': f'Choose one of {INSTALLMENT_PLANS}.'})
        record['default_installments'] = installments
        for field in ('transportation_fee_one_way', 'transportation_fee_two_way'):
            record[field] = as_amount(record.get(field), field)

        existing = self._settings_record(school_id)
        record['id'] = existing['id'] if existing else None

        with self.store.atomic(SETTINGS, SCHOOLS, ACCOUNTS):
            saved = self.store.upsert(SETTINGS, record)

            school = self.get_school(school_id)
            if school is not None:
                for field in SCHOOL_PROFILE_FIELDS:
                    if field in record:
                        school[field] = record[field]
                self.store.upsert(SCHOOLS, school)

                for account in self.list_accounts(school_id):
                    account['school_name'] = school.get('name', '')
                    account['school_logo'] = school.get('logo', '')
                    self.store.upsert(ACCOUNTS, account)

        logger.info('Saved settings for school %s', school_id)
        return saved
