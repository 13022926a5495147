import os

from welfare import create_app
from welfare.extensions import db
from welfare.models import User
from welfare.services.rbac import seed_system_roles

EMAIL = os.environ.get("ADMIN_EMAIL", "admin@welfare.local")
NAME = os.environ.get("ADMIN_NAME", "Welfare Super Admin")

app = create_app()

with app.app_context():
    print("🔁 Seeding RBAC catalogue...")
    created = seed_system_roles()
    print(f"   {created['permissions']} permission(s), {created['roles']} role(s) added")

    admin = User.query.filter_by(email=EMAIL).first()
    if admin is not None:
        print("ℹ️  Admin already exists:", EMAIL)
    else:
        print("🔐 Creating super admin...")
        admin = User(name=NAME, email=EMAIL, phone=None, role="super_admin", is_active=True)
        db.session.add(admin)
        db.session.commit()
        print("✅ Admin created:", EMAIL)
