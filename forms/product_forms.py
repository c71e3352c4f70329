from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, BooleanField, SubmitField
from wtforms.validators import DataRequired, Length, NumberRange, Optional, Regexp


class ProductForm(FlaskForm):
    sku_name = StringField('Product Name', validators=[
        DataRequired(message='Product name is required'),
        Length(min=2, message='Product name must be at least 2 characters'),
    ])
    code_name = StringField('SKU Code', validators=[
        Optional(),
        Regexp(r'^[A-Za-z0-9]+$', message='SKU code must be alphanumeric'),
    ])
    wholesale_price = FloatField('Wholesale Price', validators=[Optional(), NumberRange(min=0, message='Invalid wholesale price')])
    retail_price = FloatField('Retail Price', validators=[Optional(), NumberRange(min=0, message='Invalid retail price')])
    returnable = BooleanField('Returnable')
    submit = SubmitField('Save')
