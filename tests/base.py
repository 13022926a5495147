import itertools
import unittest

from welfare import create_app
from welfare.extensions import db
from welfare.models import Application, Interview, Project, Region, Scheme, User
from welfare.settings import TestConfig

_seq = itertools.count(1)


class AppTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app(TestConfig)
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    # ======================
    # Fixtures
    # ======================
    def make_region(self, name, type, parent=None, code=None, is_active=True):
        region = Region(
            name=name,
            code=code or name.upper().replace(" ", "_"),
            type=type,
            parent=parent,
            is_active=is_active,
        )
        db.session.add(region)
        db.session.commit()
        return region

    def make_tree(self):
        """
        Kerala
          Ernakulam
            Kochi
              Unit 1, Unit 2
          Thrissur
        """
        state = self.make_region("Kerala", "state")
        district = self.make_region("Ernakulam", "district", state)
        other_district = self.make_region("Thrissur", "district", state)
        area = self.make_region("Kochi", "area", district)
        unit = self.make_region("Unit 1", "unit", area)
        other_unit = self.make_region("Unit 2", "unit", area)
        return {
            "state": state,
            "district": district,
            "other_district": other_district,
            "area": area,
            "unit": unit,
            "other_unit": other_unit,
        }

    def make_user(self, role, **kwargs):
        n = next(_seq)
        scope_regions = kwargs.pop("scope_regions", [])
        scope_projects = kwargs.pop("scope_projects", [])
        scope_schemes = kwargs.pop("scope_schemes", [])
        user = User(name=f"User {n}", email=f"user{n}@example.org", role=role, **kwargs)
        user.scope_regions = list(scope_regions)
        user.scope_projects = list(scope_projects)
        user.scope_schemes = list(scope_schemes)
        db.session.add(user)
        db.session.commit()
        return user

    def make_project_and_scheme(self):
        project = Project(name="Housing", code=f"PRJ{next(_seq)}")
        db.session.add(project)
        db.session.flush()
        scheme = Scheme(name="Roof Repair", code=f"SCH{next(_seq)}", project_id=project.id)
        db.session.add(scheme)
        db.session.commit()
        return project, scheme

    def make_application(self, status="approved", tree=None, **kwargs):
        n = next(_seq)
        if tree is not None:
            kwargs.setdefault("state_id", tree["state"].id)
            kwargs.setdefault("district_id", tree["district"].id)
            kwargs.setdefault("area_id", tree["area"].id)
            kwargs.setdefault("unit_id", tree["unit"].id)
        application = Application(
            application_number=f"APP2024{n:05d}",
            applicant_name=kwargs.pop("applicant_name", f"Applicant {n}"),
            applicant_phone=kwargs.pop("applicant_phone", f"98470{n:05d}"),
            status=status,
            **kwargs,
        )
        db.session.add(application)
        db.session.commit()
        return application

    def make_interview(self, application, status="scheduled"):
        interview = Interview(application_id=application.id, status=status)
        db.session.add(interview)
        db.session.commit()
        return interview
