from flask_wtf import FlaskForm
from wtforms import FloatField, SubmitField
from wtforms.validators import InputRequired, NumberRange


class ApproveOrderForm(FlaskForm):
    amount_tendered = FloatField('Amount Tendered', validators=[
        InputRequired(message='Please enter the amount tendered'),
        NumberRange(min=0),
    ])
    submit = SubmitField('Approve Order')
