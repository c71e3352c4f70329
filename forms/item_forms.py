from datetime import date

from flask import request
from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed
from wtforms import SelectField, IntegerField, StringField, DateField, FieldList, FormField, SubmitField
from wtforms.validators import DataRequired, NumberRange, Optional, ValidationError
from wtforms.widgets import HiddenInput

from models import db
from models.product import Product
from utils import available_products

PICKER_ROWS = 5
BLANK_CHOICE = (0, '-- Select product --')


def product_label(product):
    if product.code_name:
        return f'{product.sku_name} ({product.code_name})'
    return product.sku_name


class ProductQtyForm(FlaskForm):
    class Meta:
        csrf = False

    product = SelectField('Product', coerce=int, validators=[Optional()])
    quantity = IntegerField('Quantity', validators=[Optional(), NumberRange(min=1)])


class ProductCountForm(FlaskForm):
    class Meta:
        csrf = False

    product = SelectField('Product', coerce=int, validators=[Optional()])
    quantity = IntegerField('Counted', validators=[Optional(), NumberRange(min=0)])


def check_picker_rows(field, min_quantity=1, required=True):
    seen = set()
    for entry in field.entries:
        product_id = entry.form.product.data
        quantity = entry.form.quantity.data
        if not product_id:
            continue
        if product_id in seen:
            raise ValidationError('Each product can only be added once')
        if quantity is None or quantity < min_quantity:
            raise ValidationError('Please enter valid quantities for all products')
        seen.add(product_id)
    if required and not seen:
        raise ValidationError('Please add at least one product')


class ItemsFormMixin:
    """Product/quantity picker rows shared by every multi-item form.

    Rows left on the blank choice are ignored. Choices offered by a row
    leave out products already taken by the other rows and anything the
    predicate rejects.
    """

    picker_fields = ('items',)
    items_min_quantity = 1

    def set_product_choices(self, products, predicate=None):
        self._picker_products = [p for p in products if predicate is None or predicate(p)]
        choices = [BLANK_CHOICE] + [(p.id, product_label(p)) for p in self._picker_products]
        for name in self.picker_fields:
            for entry in self[name].entries:
                entry.form.product.choices = choices

    def add_row(self):
        """Append a blank row when the form was posted with an "Add item" button.

        Returns True in that case so the caller re-renders instead of saving.
        """
        name = request.form.get('add_row')
        if request.method != 'POST' or name not in self.picker_fields:
            return False
        self[name].append_entry()
        self.set_product_choices(self._picker_products)
        return True

    def narrow_product_choices(self):
        for name in self.picker_fields:
            entries = self[name].entries
            for entry in entries:
                taken = [e.form.product.data for e in entries if e is not entry and e.form.product.data]
                remaining = available_products(self._picker_products, taken)
                entry.form.product.choices = [BLANK_CHOICE] + [(p.id, product_label(p)) for p in remaining]

    def validate_items(self, field):
        check_picker_rows(field, min_quantity=self.items_min_quantity)

    def selected_items(self, name='items'):
        return [
            (entry.form.product.data, entry.form.quantity.data)
            for entry in self[name].entries
            if entry.form.product.data
        ]

    def selected_products(self, name='items'):
        """(Product, quantity) pairs for the filled rows."""
        result = []
        for product_id, quantity in self.selected_items(name):
            product = db.session.get(Product, product_id)
            if product is None or product.deleted_at is not None:
                raise ValidationError(f'Unknown product (ID: {product_id})')
            result.append((product, quantity))
        return result


class ReceivableForm(ItemsFormMixin, FlaskForm):
    date = DateField('Date', default=date.today, validators=[DataRequired()])
    purchase_order_number = StringField('Purchase Order Number',
                                        validators=[DataRequired(message='Please enter a Purchase Order Number')])
    received_by = StringField('Received By',
                              validators=[DataRequired(message='Please enter who received the delivery')])
    delivered_by = StringField('Delivered By',
                               validators=[DataRequired(message='Please enter who delivered the items')])
    vehicle_no = StringField('Vehicle Number',
                             validators=[DataRequired(message='Please enter the vehicle number')])
    num_of_pallets = IntegerField('Number of Pallets', default=0, validators=[Optional(), NumberRange(min=0)])
    num_of_pcs = IntegerField('Number of PCs', default=0, validators=[Optional(), NumberRange(min=0)])
    purchase_order_image = FileField('Purchase Order Image', validators=[
        FileAllowed(['jpg', 'jpeg', 'png', 'gif', 'webp'], 'Please upload an image file')
    ])
    items = FieldList(FormField(ProductQtyForm), min_entries=PICKER_ROWS)
    submit = SubmitField('Record Receivable')


class BreakageForm(ItemsFormMixin, FlaskForm):
    date = DateField('Date', default=date.today, validators=[DataRequired()])
    reason = StringField('General Reason (Optional)', validators=[Optional()])
    items = FieldList(FormField(ProductQtyForm), min_entries=PICKER_ROWS)
    submit = SubmitField('Record Breakages')


class LoadoutForm(ItemsFormMixin, FlaskForm):
    date = DateField('Date', default=date.today, validators=[DataRequired()])
    vse_id = SelectField('VSE', coerce=int, validators=[DataRequired(message='Please select a VSE')])
    items = FieldList(FormField(ProductQtyForm), min_entries=PICKER_ROWS)
    submit = SubmitField('Save Loadout')


class ReturnCratesForm(ItemsFormMixin, FlaskForm):
    date = DateField('Date', default=date.today, validators=[DataRequired()])
    vehicle_no = StringField('Vehicle Number', validators=[DataRequired()])
    returned_by = StringField('Returned By', validators=[DataRequired()])
    num_of_pallets = IntegerField('Number of Pallets', validators=[Optional(), NumberRange(min=0)])
    num_of_pcs = IntegerField('Number of PCs', validators=[Optional(), NumberRange(min=0)])
    items = FieldList(FormField(ProductQtyForm), min_entries=PICKER_ROWS)
    submit = SubmitField('Record Return')


class CustomerReturnEmptiesForm(ItemsFormMixin, FlaskForm):
    customer_id = SelectField('Customer', coerce=int, validators=[DataRequired(message='Please select a customer')])
    date = DateField('Date', default=date.today, validators=[DataRequired()])
    items = FieldList(FormField(ProductQtyForm), min_entries=PICKER_ROWS)
    submit = SubmitField('Record Return')


class TakeStockForm(ItemsFormMixin, FlaskForm):
    picker_fields = ('items', 'breakage_items')
    items_min_quantity = 0

    date = DateField('Date', default=date.today, validators=[DataRequired()])
    items = FieldList(FormField(ProductCountForm), min_entries=PICKER_ROWS)
    breakage_items = FieldList(FormField(ProductQtyForm), min_entries=PICKER_ROWS)
    submit = SubmitField('Submit Stock Take')

    def validate_items(self, field):
        check_picker_rows(field, min_quantity=0, required=False)

    def validate_breakage_items(self, field):
        check_picker_rows(field, min_quantity=1, required=False)

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        if not self.selected_items('items') and not self.selected_items('breakage_items'):
            self.items.errors.append('Please add at least one product')
            return False
        return True


class SettleItemForm(FlaskForm):
    class Meta:
        csrf = False

    item_id = IntegerField(widget=HiddenInput(), validators=[DataRequired()])
    sold = IntegerField('Sold', default=0, validators=[Optional(), NumberRange(min=0, message='Sold cannot be negative')])
    returned = IntegerField('Returned', default=0,
                            validators=[Optional(), NumberRange(min=0, message='Returned cannot be negative')])


class LoadoutSettleForm(FlaskForm):
    items = FieldList(FormField(SettleItemForm))
    submit = SubmitField('Save')

    @classmethod
    def for_loadout(cls, loadout):
        return cls(data={'items': [
            {'item_id': item.id, 'sold': item.quantity_sold or 0, 'returned': item.quantity_returned or 0}
            for item in loadout.items
        ]})

    def results(self):
        """Map loadout item id to (sold, returned); blanks count as zero."""
        return {
            entry.form.item_id.data: (entry.form.sold.data or 0, entry.form.returned.data or 0)
            for entry in self.items.entries
        }
