from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from models import db

ROLES = ['admin', 'empties_manager', 'operations_manager', 'sales_manager', 'cashier', 'auditor']

ROLE_LABELS = {
    'admin': 'Admin',
    'empties_manager': 'Empties Manager',
    'operations_manager': 'Operations Manager',
    'sales_manager': 'Sales Manager',
    'cashier': 'Cashier',
    'auditor': 'Auditor',
}


# user profile with its dashboard role
class Profile(UserMixin, db.Model):
    __tablename__ = 'profiles'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(128), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(32), nullable=False, default='auditor')
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    def __repr__(self):
        return f'<Profile {self.email}>'

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def is_admin(self):
        return self.role == 'admin'

    def is_auditor(self):
        return self.role == 'auditor'

    def has_role(self, *roles):
        return self.role in roles

    def can_edit(self):
        # auditors get read-only access everywhere
        return not self.is_auditor()

    def get_role_display(self):
        return ROLE_LABELS.get(self.role, self.role)

    def get_display_name(self):
        return self.full_name or self.email
