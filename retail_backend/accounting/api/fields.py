# accounting/api/fields.py

"""
MONEY FIELD (API BOUNDARY)

Amounts travel over the wire as decimal strings in major units ("1250.50")
and live everywhere else as integer minor units. This field is the only
place the two meet.
"""

from rest_framework import serializers

from accounting.money import MoneyConversionError, to_major_units, to_minor_units


class MoneyField(serializers.Field):
    default_error_messages = {
        "invalid": "A valid amount is required.",
        "negative": "Amount cannot be negative.",
        "not_positive": "Amount must be greater than zero.",
    }

    def __init__(self, *, allow_negative=False, positive=False, **kwargs):
        self.allow_negative = allow_negative
        self.positive = positive
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        try:
            minor = to_minor_units(data)
        except MoneyConversionError:
            self.fail("invalid")

        if self.positive and minor <= 0:
            self.fail("not_positive")
        if not self.allow_negative and minor < 0:
            self.fail("negative")
        return minor

    def to_representation(self, value):
        return str(to_major_units(int(value)))
