from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed, FileRequired
from wtforms import StringField, SelectField, IntegerField, BooleanField, SubmitField
from wtforms.validators import DataRequired, Length, NumberRange, Optional


class CustomerForm(FlaskForm):
    name = StringField('Customer Name', validators=[DataRequired(message='Customer name is required'), Length(max=128)])
    phone = StringField('Phone', validators=[Optional(), Length(max=32)])
    type_id = SelectField('Customer Type', coerce=int, validators=[DataRequired(message='Please select a customer type')])
    has_mou = BooleanField('Has MOU')
    submit = SubmitField('Save')


class AddCustomerForm(CustomerForm):
    balance = IntegerField('Initial Crates Balance', default=0, validators=[Optional(), NumberRange(min=0)])


class CustomerImportForm(FlaskForm):
    file = FileField('Spreadsheet', validators=[
        FileRequired(),
        FileAllowed(['xlsx', 'csv'], 'Upload an .xlsx or .csv file'),
    ])
    submit = SubmitField('Import')
