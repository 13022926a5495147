from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

# ======================
# Database
# ======================
db = SQLAlchemy()
migrate = Migrate()

# ======================
# Login Manager
# ======================
login_manager = LoginManager()

from welfare.models import User  # noqa: E402


@login_manager.user_loader
def load_user(user_id):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
