"""
Declarative access scopes.

A scope is written once as clauses of conditions and evaluated two ways:
``as_q(user)`` builds the queryset predicate used for list endpoints and
``matches(user, obj)`` checks an object already in hand. Both readings come
from the same condition objects, so list filtering and detail checks agree.

Clauses are OR-ed; conditions inside one clause are AND-ed.
"""

from django.db.models import Q
from django.utils import timezone


def _attr(obj, name):
    # Prefer the raw foreign key value so no query is issued
    fk_name = f"{name}_id"
    if hasattr(obj, fk_name):
        return getattr(obj, fk_name)
    return getattr(obj, name)


class Condition:
    def q(self, user):
        raise NotImplementedError

    def test(self, user, obj):
        raise NotImplementedError


class IsUser(Condition):
    """``obj.<field>`` is the requesting user."""

    def __init__(self, field):
        self.field = field

    def q(self, user):
        return Q(**{self.field: user.pk})

    def test(self, user, obj):
        value = _attr(obj, self.field)
        return value is not None and str(value) == str(user.pk)


class IsUnset(Condition):
    def __init__(self, field):
        self.field = field

    def q(self, user):
        return Q(**{f"{self.field}__isnull": True})

    def test(self, user, obj):
        return _attr(obj, self.field) is None


class ValueIn(Condition):
    def __init__(self, field, values):
        self.field = field
        self.values = frozenset(values)

    def q(self, user):
        return Q(**{f"{self.field}__in": sorted(self.values)})

    def test(self, user, obj):
        return getattr(obj, self.field) in self.values


class RoleListed(Condition):
    """The user's current role appears in a JSON list of role names."""

    def __init__(self, field):
        self.field = field

    def q(self, user):
        # JSON text match on the quoted role name; portable across SQLite and PostgreSQL
        return Q(**{f"{self.field}__icontains": f'"{user.role}"'})

    def test(self, user, obj):
        return user.role in (getattr(obj, self.field) or [])


class NotBeforeJoined(Condition):
    """``obj.<field>`` is at or after the user's account creation time."""

    def __init__(self, field, user_field='date_joined'):
        self.field = field
        self.user_field = user_field

    def q(self, user):
        return Q(**{f"{self.field}__gte": getattr(user, self.user_field)})

    def test(self, user, obj):
        value = getattr(obj, self.field)
        return value is not None and value >= getattr(user, self.user_field)


class FlagSet(Condition):
    def __init__(self, field, value=True):
        self.field = field
        self.value = value

    def q(self, user):
        return Q(**{self.field: self.value})

    def test(self, user, obj):
        return getattr(obj, self.field) == self.value


class HasMember(Condition):
    """A reverse relation holds a row pointing at the user (e.g. recipients)."""

    def __init__(self, relation, field='user'):
        self.relation = relation
        self.field = field

    def q(self, user):
        return Q(**{f"{self.relation}__{self.field}": user.pk})

    def test(self, user, obj):
        fk_name = f"{self.field}_id"
        return any(
            str(getattr(row, fk_name)) == str(user.pk)
            for row in getattr(obj, self.relation).all()
        )


class NotExpired(Condition):
    def __init__(self, field='expires_at'):
        self.field = field

    def q(self, user):
        return Q(**{f"{self.field}__isnull": True}) | Q(**{f"{self.field}__gt": timezone.now()})

    def test(self, user, obj):
        value = getattr(obj, self.field)
        return value is None or value > timezone.now()


class Clause:
    def __init__(self, *conditions):
        self.conditions = conditions

    def q(self, user):
        predicate = Q()
        for condition in self.conditions:
            predicate &= condition.q(user)
        return predicate

    def test(self, user, obj):
        return all(condition.test(user, obj) for condition in self.conditions)


class Scope:
    """
    Role-keyed set of clauses.

    ``unrestricted`` roles match everything (still subject to ``require``);
    ``by_role`` gives clauses per role; ``default`` applies to roles not
    listed; ``require`` conditions apply to every role.
    """

    def __init__(self, unrestricted=(), by_role=None, default=(), require=(), distinct=False):
        self.unrestricted = frozenset(unrestricted)
        self.by_role = by_role or {}
        self.default = tuple(default)
        self.require = tuple(require)
        self.distinct = distinct

    def clauses_for(self, user):
        return self.by_role.get(user.role, self.default)

    def as_q(self, user):
        if not _is_live(user):
            return Q(pk__in=[])

        required = Clause(*self.require).q(user)
        if user.role in self.unrestricted:
            return required

        clauses = self.clauses_for(user)
        if not clauses:
            return Q(pk__in=[])

        predicate = Q()
        for clause in clauses:
            predicate |= clause.q(user)
        return required & predicate

    def matches(self, user, obj):
        if not _is_live(user):
            return False
        if not Clause(*self.require).test(user, obj):
            return False
        if user.role in self.unrestricted:
            return True
        return any(clause.test(user, obj) for clause in self.clauses_for(user))

    def filter(self, queryset, user):
        queryset = queryset.filter(self.as_q(user))
        return queryset.distinct() if self.distinct else queryset


def _is_live(user):
    return bool(user and getattr(user, 'is_authenticated', False) and getattr(user, 'role', None))
