from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SubmitField, SelectField, BooleanField
from wtforms.validators import DataRequired, Length, Regexp, Optional

from models.user import ROLES, ROLE_LABELS

ROLE_CHOICES = [(role, ROLE_LABELS[role]) for role in ROLES]
EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])
    submit = SubmitField('Sign in')


class AddUserForm(FlaskForm):
    full_name = StringField('Full Name', validators=[DataRequired(), Length(max=128)])
    email = StringField('Email', validators=[DataRequired(), Regexp(EMAIL_PATTERN, message='Invalid email address')])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6, message='Password must be at least 6 characters')])
    role = SelectField('Role', choices=ROLE_CHOICES, default='auditor', validators=[DataRequired()])
    submit = SubmitField('Create User')


class EditProfileForm(FlaskForm):
    full_name = StringField('Full Name', validators=[Optional(), Length(max=128)])
    role = SelectField('Role', choices=ROLE_CHOICES, validators=[DataRequired()])
    is_active = BooleanField('Active')
    submit = SubmitField('Save')
