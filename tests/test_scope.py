import unittest
from types import SimpleNamespace
from unittest import mock

from sqlalchemy.exc import SQLAlchemyError

from tests.base import AppTestCase
from welfare.constants.roles import COORDINATOR_ROLE_TARGETS, GLOBAL_ROLES, REGIONAL_ROLE_LEVELS, Role
from welfare.models import Application
from welfare.services.scope import (
    NO_SCOPE,
    can_access,
    normalize_admin_scope,
    normalize_all_admin_scopes,
    resolve_scope,
    scope_filter,
)


def record(**refs):
    base = {
        "state_id": None,
        "district_id": None,
        "area_id": None,
        "unit_id": None,
        "project_id": None,
        "scheme_id": None,
    }
    base.update(refs)
    return SimpleNamespace(**base)


class RoleBucketTests(unittest.TestCase):
    def test_every_role_in_exactly_one_bucket(self):
        buckets = [set(GLOBAL_ROLES), set(REGIONAL_ROLE_LEVELS), set(COORDINATOR_ROLE_TARGETS), {Role.BENEFICIARY}]
        for role in Role:
            self.assertEqual(sum(role in bucket for bucket in buckets), 1, role)


class GlobalRoleTests(AppTestCase):
    def test_global_roles_see_everything(self):
        for role in (Role.SUPER_ADMIN, Role.STATE_ADMIN):
            user = self.make_user(role.value)
            scope = resolve_scope(user)
            self.assertTrue(scope.is_global)
            self.assertEqual(scope.kind, "global")
            self.assertFalse(scope.region_ids)
            self.assertTrue(can_access(user, record(unit_id=12345)))
            self.assertTrue(can_access(user, record()))

    def test_global_scope_ignores_region_list(self):
        tree = self.make_tree()
        user = self.make_user("state_admin", scope_regions=[tree["unit"]])
        self.assertTrue(resolve_scope(user).is_global)
        self.assertTrue(can_access(user, record(unit_id=tree["other_unit"].id)))


class RegionalRoleTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.tree = self.make_tree()

    def test_unit_admin_sees_only_own_unit(self):
        user = self.make_user("unit_admin", scope_regions=[self.tree["unit"]])

        self.assertTrue(can_access(user, record(unit_id=self.tree["unit"].id)))
        self.assertFalse(can_access(user, record(unit_id=self.tree["other_unit"].id)))
        self.assertFalse(can_access(user, record()))

    def test_region_list_used_verbatim(self):
        user = self.make_user("district_admin", scope_regions=[self.tree["district"]])
        scope = resolve_scope(user)

        self.assertEqual(scope.kind, "regions")
        self.assertEqual(scope.region_ids, frozenset({self.tree["district"].id}))

    def test_descendants_only_when_enabled(self):
        user = self.make_user("area_admin", scope_regions=[self.tree["district"]])

        self.assertNotIn(self.tree["area"].id, resolve_scope(user).region_ids)

        self.app.config["REGION_SCOPE_INCLUDE_DESCENDANTS"] = True
        expanded = resolve_scope(user).region_ids
        self.assertIn(self.tree["area"].id, expanded)
        self.assertIn(self.tree["unit"].id, expanded)

    def test_descendant_flag_can_be_passed_explicitly(self):
        user = self.make_user("unit_admin", scope_regions=[self.tree["area"]])
        scope = resolve_scope(user, include_descendants=True)
        self.assertTrue(can_access(user, record(unit_id=self.tree["other_unit"].id), scope=scope))
        self.assertFalse(can_access(user, record(unit_id=self.tree["other_unit"].id)))

    def test_legacy_single_field(self):
        user = self.make_user("area_admin", scope_area_id=self.tree["area"].id)

        self.assertEqual(resolve_scope(user).region_ids, frozenset({self.tree["area"].id}))
        self.assertTrue(can_access(user, record(area_id=self.tree["area"].id)))

    def test_legacy_field_checked_alongside_list(self):
        user = self.make_user(
            "unit_admin",
            scope_regions=[self.tree["unit"]],
            scope_unit_id=self.tree["other_unit"].id,
        )
        self.assertTrue(can_access(user, record(unit_id=self.tree["unit"].id)))
        self.assertTrue(can_access(user, record(unit_id=self.tree["other_unit"].id)))

    def test_level_mismatch_is_denied(self):
        # A district admin is matched on district_id, not unit_id.
        user = self.make_user("district_admin", scope_regions=[self.tree["unit"]])
        self.assertFalse(can_access(user, record(unit_id=self.tree["unit"].id)))

    def test_empty_scope_denies(self):
        user = self.make_user("district_admin")
        self.assertTrue(resolve_scope(user).is_empty)
        self.assertFalse(can_access(user, record(district_id=self.tree["district"].id)))

    def test_store_failure_resolves_to_no_scope(self):
        user = self.make_user("district_admin", scope_regions=[self.tree["district"]])
        self.app.config["REGION_SCOPE_INCLUDE_DESCENDANTS"] = True
        with mock.patch("welfare.services.scope.descendant_ids", side_effect=SQLAlchemyError("down")):
            self.assertIs(resolve_scope(user), NO_SCOPE)


class FailClosedTests(AppTestCase):
    def test_missing_user(self):
        self.assertIs(resolve_scope(None), NO_SCOPE)
        self.assertFalse(can_access(None, record(unit_id=1)))

    def test_inactive_global_user(self):
        user = self.make_user("super_admin", is_active=False)
        self.assertIs(resolve_scope(user), NO_SCOPE)
        self.assertFalse(can_access(user, record(unit_id=1)))

    def test_inactive_legacy_field_admin(self):
        tree = self.make_tree()
        user = self.make_user("district_admin", scope_district_id=tree["district"].id, is_active=False)
        application = self.make_application(tree=tree)

        self.assertIs(resolve_scope(user), NO_SCOPE)
        self.assertFalse(can_access(user, application))
        self.assertEqual(Application.query.filter(scope_filter(user, Application)).count(), 0)

    def test_store_failure_ignores_legacy_field(self):
        tree = self.make_tree()
        user = self.make_user("unit_admin", scope_unit_id=tree["unit"].id)
        application = self.make_application(tree=tree)
        self.app.config["REGION_SCOPE_INCLUDE_DESCENDANTS"] = True

        with mock.patch("welfare.services.scope.descendant_ids", side_effect=SQLAlchemyError("down")):
            self.assertFalse(can_access(user, application))
            self.assertEqual(Application.query.filter(scope_filter(user, Application)).count(), 0)

    def test_unknown_role(self):
        user = SimpleNamespace(id=1, role="auditor", is_active=True)
        self.assertIs(resolve_scope(user), NO_SCOPE)
        self.assertFalse(can_access(user, record(unit_id=1)))

    def test_beneficiary_has_no_admin_scope(self):
        user = self.make_user("beneficiary")
        self.assertTrue(resolve_scope(user).is_empty)
        self.assertFalse(can_access(user, record(unit_id=1)))

    def test_malformed_scope_entries_are_dropped(self):
        user = SimpleNamespace(id=1, role="unit_admin", is_active=True, scope_regions=["7", None, True])
        self.assertTrue(resolve_scope(user).is_empty)
        self.assertFalse(can_access(user, record(unit_id=7)))

    def test_missing_record(self):
        user = self.make_user("super_admin")
        self.assertFalse(can_access(user, None))


class CoordinatorTests(AppTestCase):
    def test_project_coordinator(self):
        project, scheme = self.make_project_and_scheme()
        user = self.make_user("project_coordinator", scope_projects=[project])

        scope = resolve_scope(user)
        self.assertEqual(scope.kind, "projects")
        self.assertTrue(can_access(user, record(project_id=project.id)))
        self.assertFalse(can_access(user, record(project_id=project.id + 1)))
        self.assertFalse(can_access(user, record(scheme_id=scheme.id)))

    def test_scheme_coordinator(self):
        project, scheme = self.make_project_and_scheme()
        user = self.make_user("scheme_coordinator", scope_schemes=[scheme])

        self.assertEqual(resolve_scope(user).scheme_ids, frozenset({scheme.id}))
        self.assertTrue(can_access(user, record(scheme_id=scheme.id)))
        self.assertFalse(can_access(user, record()))

    def test_regional_admin_gets_no_programme_ids(self):
        project, _ = self.make_project_and_scheme()
        user = self.make_user("unit_admin", scope_projects=[project])
        self.assertFalse(resolve_scope(user).project_ids)


class ScopeFilterTests(AppTestCase):
    def setUp(self):
        super().setUp()
        self.tree = self.make_tree()
        self.mine = self.make_application(tree=self.tree)
        self.theirs = self.make_application(tree=self.tree, unit_id=self.tree["other_unit"].id)

    def _visible(self, user):
        return {a.id for a in Application.query.filter(scope_filter(user, Application)).all()}

    def test_global(self):
        self.assertEqual(self._visible(self.make_user("super_admin")), {self.mine.id, self.theirs.id})

    def test_unit_admin(self):
        user = self.make_user("unit_admin", scope_regions=[self.tree["unit"]])
        self.assertEqual(self._visible(user), {self.mine.id})

    def test_empty_scope_sees_nothing(self):
        self.assertEqual(self._visible(self.make_user("unit_admin")), set())
        self.assertEqual(self._visible(self.make_user("beneficiary")), set())


class NormalizeScopeTests(AppTestCase):
    def test_legacy_field_copied_into_list(self):
        tree = self.make_tree()
        user = self.make_user("unit_admin", scope_unit_id=tree["unit"].id)

        self.assertTrue(normalize_admin_scope(user))
        self.assertFalse(normalize_admin_scope(user))
        self.assertEqual([r.id for r in user.scope_regions], [tree["unit"].id])

    def test_bulk_normalisation(self):
        tree = self.make_tree()
        self.make_user("unit_admin", scope_unit_id=tree["unit"].id)
        self.make_user("area_admin", scope_area_id=tree["area"].id, scope_regions=[tree["area"]])
        self.make_user("super_admin")

        self.assertEqual(normalize_all_admin_scopes(), 1)
        self.assertEqual(normalize_all_admin_scopes(), 0)


if __name__ == "__main__":
    unittest.main()
